"""CLI interface for Flashcard SRS.

Usage:
    python -m flashcard_srs add-set "Title" [--public]   Create a flashcard set
    python -m flashcard_srs add-card SET "Q" "A"         Add a card to a set
    python -m flashcard_srs grade CARD QUALITY           Grade a card (0-5)
    python -m flashcard_srs due SET                      Show which cards in a set are due
    python -m flashcard_srs plan                         Show today's study plan
    python -m flashcard_srs retrain                      Retrain the review model
    python -m flashcard_srs status                       Show model and training status
"""

import argparse
import asyncio
import logging

from sqlalchemy import select

from srs_backend.api.deps import get_predictor
from srs_backend.config import DATA_DIR
from srs_backend.database import async_session, engine
from srs_backend.errors import SRSError
from srs_backend.models import Base
from srs_backend.models.flashcard import CardSet, Flashcard
from srs_backend.models.user import User
from srs_backend.srs.queue import get_completion_status, list_due_cards
from srs_backend.srs.review import ReviewService
from srs_backend.srs.scheduling import PredictionService
from srs_backend.srs.training import retrain_model, training_stats


async def ensure_db() -> None:
    """Create tables if they don't exist."""
    DATA_DIR.mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def ensure_user(user_id: int | None = None) -> int:
    """Return ``user_id`` if given, otherwise the first user, creating one if needed."""
    async with async_session() as db:
        if user_id is not None:
            return user_id
        user = (await db.execute(select(User).order_by(User.id).limit(1))).scalar_one_or_none()
        if user:
            return user.id

        user = User(name="Student")
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user.id


async def cmd_add_set(args: argparse.Namespace) -> None:
    """Create a flashcard set owned by the user."""
    await ensure_db()
    user_id = await ensure_user(args.user)
    async with async_session() as db:
        card_set = CardSet(owner_id=user_id, title=args.title, is_public=args.public)
        db.add(card_set)
        await db.commit()
        print(f"  Created set {card_set.id}: {card_set.title}")


async def cmd_add_card(args: argparse.Namespace) -> None:
    """Add a card to an existing set."""
    await ensure_db()
    async with async_session() as db:
        card_set = await db.get(CardSet, args.set_id)
        if card_set is None:
            print(f"  No set with id {args.set_id}.")
            return
        card = Flashcard(set_id=card_set.id, question=args.question, answer=args.answer)
        db.add(card)
        await db.commit()
        print(f"  Added card {card.id} to set {card_set.id}")


async def cmd_grade(args: argparse.Namespace) -> None:
    """Grade a card and print its new schedule."""
    await ensure_db()
    user_id = await ensure_user(args.user)
    async with async_session() as db:
        outcome = await ReviewService().submit_grade(db, user_id, args.card_id, args.quality)
    print(f"  {outcome.message}")
    print(f"  {'Next review:':<16} {outcome.next_review_date:%Y-%m-%d %H:%M}")
    print(f"  {'Ease factor:':<16} {outcome.ease_factor:.2f}")
    print(f"  {'Repetitions:':<16} {outcome.repetitions}")
    if outcome.set_completed:
        print("  Set completed!")


async def cmd_due(args: argparse.Namespace) -> None:
    """Show the due status of every card in a set."""
    await ensure_db()
    user_id = await ensure_user(args.user)
    async with async_session() as db:
        cards = await list_due_cards(db, user_id, args.set_id)
        status = await get_completion_status(db, user_id, args.set_id)

    due = [card for card in cards if card.is_due]
    print(f"\n  Set {args.set_id}: {len(due)} of {len(cards)} cards due")
    print(f"  Mastered {status.cards_studied_count}/{status.total_cards_count}"
          + (" (completed)" if status.is_completed else ""))
    for card in cards:
        when = f"{card.next_review_date:%Y-%m-%d}" if card.next_review_date else "new"
        print(f"    card {card.card_id:<6} {'DUE' if card.is_due else '   '}  {when}")
    print()


async def cmd_plan(args: argparse.Namespace) -> None:
    """Show the study plan for the next day."""
    await ensure_db()
    user_id = await ensure_user(args.user)
    service = PredictionService(get_predictor())
    async with async_session() as db:
        plan = await service.study_plan(db, user_id)

    if not plan:
        print("\n  Nothing to study in the next 24 hours. You're all caught up!\n")
        return
    source = "model" if service.model_status().is_model_trained else "SM-2"
    print(f"\n  Study plan ({len(plan)} cards, {source})")
    for item in plan:
        print(
            f"    card {item.card_id:<6} {item.priority:<7} in {item.optimal_review_hours:>3}h"
            f"  {item.reason}{'' if item.is_model_derived else ' [fallback]'}"
        )
    print()


async def cmd_retrain(args: argparse.Namespace) -> None:
    """Retrain the review model from progress data."""
    await ensure_db()
    async with async_session() as db:
        used = await retrain_model(db, get_predictor())
    print(f"  Model retrained on {used} examples")


async def cmd_status(args: argparse.Namespace) -> None:
    """Show model and training data status."""
    await ensure_db()
    predictor = get_predictor()
    status = PredictionService(predictor).model_status()
    async with async_session() as db:
        stats = await training_stats(db, predictor)

    print("\n  Review Model")
    print(f"  {'Status:':<20} {status.status}")
    print(f"  {'Examples:':<20} {stats.total_examples}/{stats.required_examples}")
    print(f"  {'Ready to train:':<20} {'yes' if stats.is_ready else 'no'}")
    print()


def main() -> None:
    """Entry point for the Flashcard SRS CLI application."""
    parser = argparse.ArgumentParser(
        prog="flashcard_srs",
        description="Flashcard spaced repetition scheduler",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-u", "--user", type=int, default=None, help="Act as this user id")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # add-set
    set_parser = subparsers.add_parser("add-set", help="Create a flashcard set")
    set_parser.add_argument("title", help="Set title")
    set_parser.add_argument("--public", action="store_true", help="Visible to all users")

    # add-card
    card_parser = subparsers.add_parser("add-card", help="Add a card to a set")
    card_parser.add_argument("set_id", type=int)
    card_parser.add_argument("question")
    card_parser.add_argument("answer")

    # grade
    grade_parser = subparsers.add_parser("grade", help="Grade a card")
    grade_parser.add_argument("card_id", type=int)
    grade_parser.add_argument("quality", type=int, help="0=blackout .. 5=perfect")

    # due
    due_parser = subparsers.add_parser("due", help="Show cards due in a set")
    due_parser.add_argument("set_id", type=int)

    subparsers.add_parser("plan", help="Show the study plan")
    subparsers.add_parser("retrain", help="Retrain the review model")
    subparsers.add_parser("status", help="Show model status")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "add-set": cmd_add_set,
        "add-card": cmd_add_card,
        "grade": cmd_grade,
        "due": cmd_due,
        "plan": cmd_plan,
        "retrain": cmd_retrain,
        "status": cmd_status,
    }

    try:
        asyncio.run(cmd_map[args.command](args))
    except SRSError as exc:
        parser.exit(1, f"  Error: {exc}\n")


if __name__ == "__main__":
    main()
