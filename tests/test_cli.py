"""Tests for CLI commands (non-interactive paths)."""

import sys

import pytest

from flashcard_srs.__main__ import ensure_db, ensure_user, main


@pytest.mark.asyncio
async def test_ensure_db() -> None:
    """Database tables can be created."""
    await ensure_db()


@pytest.mark.asyncio
async def test_ensure_user() -> None:
    """Default user is created on first call."""
    await ensure_db()
    user_id = await ensure_user()
    assert user_id >= 1

    # Second call returns same ID
    user_id2 = await ensure_user()
    assert user_id2 == user_id


@pytest.mark.asyncio
async def test_ensure_user_explicit_id() -> None:
    await ensure_db()
    assert await ensure_user(42) == 42


def test_no_command_prints_help(monkeypatch, capsys) -> None:
    monkeypatch.setattr(sys, "argv", ["flashcard_srs"])
    main()
    assert "Available commands" in capsys.readouterr().out


def test_invalid_quality_exits_with_error(monkeypatch, capsys) -> None:
    monkeypatch.setattr(sys, "argv", ["flashcard_srs", "grade", "1", "9"])
    with pytest.raises(SystemExit) as exc_info:
        main()
    assert exc_info.value.code == 1
    assert "Quality must be between 0 and 5" in capsys.readouterr().err
