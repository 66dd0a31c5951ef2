"""Tests for the pure scheduling core: SM-2, mastery, and set-completion counters."""

import random
from datetime import datetime, timedelta

import pytest

from srs_backend.srs.mastery import (
    MasteryClassifier,
    MasteryTransition,
    SetCompletion,
    apply_transition,
    check_completion,
    resync_total,
)
from srs_backend.srs.sm2 import SM2, ProgressState

NOW = datetime(2026, 3, 1, 9, 0, 0)

# --- SM-2 ---


class TestSM2:
    def setup_method(self) -> None:
        self.sm2 = SM2()

    def test_initial_state(self) -> None:
        state = self.sm2.initial_state()
        assert state.ease_factor == 2.5
        assert state.interval == 0
        assert state.repetitions == 0
        assert state.next_review_date is None
        assert not state.is_mastered

    def test_first_review_good(self) -> None:
        result = self.sm2.review(self.sm2.initial_state(), 4, review_time=NOW)
        state = result.new_state
        assert state.repetitions == 1
        assert state.interval == 1
        assert state.ease_factor == pytest.approx(2.5)
        assert state.next_review_date == NOW + timedelta(days=1)
        assert result.is_success

    def test_second_review_six_days(self) -> None:
        first = self.sm2.review(self.sm2.initial_state(), 4, review_time=NOW).new_state
        later = NOW + timedelta(days=1)
        second = self.sm2.review(first, 5, review_time=later)
        assert second.new_state.repetitions == 2
        assert second.interval_days == 6
        assert second.new_state.next_review_date == later + timedelta(days=6)

    def test_progression_uses_ease_before_review(self) -> None:
        state = self.sm2.initial_state()
        intervals = []
        eases = []
        for _ in range(3):
            eases.append(state.ease_factor)
            result = self.sm2.review(state, 5, review_time=NOW)
            intervals.append(result.interval_days)
            state = result.new_state
        # eases[2] is the ease after the second review
        assert intervals == [1, 6, round(6 * eases[2])]
        assert intervals[2] == 16

    def test_interval_rounds_half_up(self) -> None:
        state = ProgressState(ease_factor=2.5, interval=5, repetitions=2)
        result = self.sm2.review(state, 5, review_time=NOW)
        assert result.interval_days == 13

    @pytest.mark.parametrize("quality", [0, 1, 2])
    def test_lapse_resets_repetitions_and_interval(self, quality: int) -> None:
        state = ProgressState(ease_factor=2.6, interval=40, repetitions=6, is_mastered=True)
        result = self.sm2.review(state, quality, review_time=NOW)
        assert result.new_state.repetitions == 0
        assert result.new_state.interval == 1
        assert result.new_state.next_review_date == NOW + timedelta(days=1)
        assert not result.is_success

    def test_lapse_still_adjusts_ease(self) -> None:
        state = ProgressState(ease_factor=2.5, interval=30, repetitions=5)
        result = self.sm2.review(state, 2, review_time=NOW)
        assert result.new_state.ease_factor == pytest.approx(2.18)

    @pytest.mark.parametrize(
        ("quality", "delta"),
        [(5, 0.1), (4, 0.0), (3, -0.14), (2, -0.32), (1, -0.54), (0, -0.8)],
    )
    def test_ease_update_formula(self, quality: int, delta: float) -> None:
        assert self.sm2.update_ease(2.5, quality) == pytest.approx(2.5 + delta)

    @pytest.mark.parametrize("ease", [1.3, 1.35, 1.6, 2.0, 2.5, 3.7, 5.0])
    @pytest.mark.parametrize("quality", range(6))
    def test_ease_never_below_floor(self, ease: float, quality: int) -> None:
        state = ProgressState(ease_factor=ease, interval=10, repetitions=3)
        new_ease = self.sm2.review(state, quality, review_time=NOW).new_state.ease_factor
        assert 1.3 <= new_ease <= 5.0

    def test_counters(self) -> None:
        state = self.sm2.initial_state()
        for quality in [5, 2, 3, 0, 4]:
            state = self.sm2.review(state, quality, review_time=NOW).new_state
        assert state.total_reviews == 5
        assert state.correct_reviews == 3

    def test_review_timestamps(self) -> None:
        first = self.sm2.review(self.sm2.initial_state(), 3, review_time=NOW).new_state
        later = NOW + timedelta(days=2)
        second = self.sm2.review(first, 3, review_time=later).new_state
        assert second.first_reviewed_at == NOW
        assert second.last_reviewed_at == later

    def test_review_is_pure(self) -> None:
        state = ProgressState(ease_factor=2.5, interval=6, repetitions=2)
        first = self.sm2.review(state, 4, review_time=NOW)
        second = self.sm2.review(state, 4, review_time=NOW)
        assert first.new_state == second.new_state
        assert state.repetitions == 2

    def test_mastery_flag_is_left_for_classifier(self) -> None:
        state = ProgressState(ease_factor=2.5, interval=6, repetitions=2, is_mastered=False)
        result = self.sm2.review(state, 5, review_time=NOW)
        assert result.new_state.repetitions == 3
        assert not result.new_state.is_mastered

    def test_is_due(self) -> None:
        assert SM2.is_due(None, NOW)
        assert SM2.is_due(NOW - timedelta(minutes=1), NOW)
        assert SM2.is_due(NOW, NOW)
        assert not SM2.is_due(NOW + timedelta(hours=1), NOW)


# --- Mastery ---


class TestMasteryClassifier:
    def setup_method(self) -> None:
        self.sm2 = SM2()
        self.classifier = MasteryClassifier()

    def test_thresholds(self) -> None:
        assert self.classifier.is_mastered(ProgressState(ease_factor=2.0, interval=15, repetitions=3))
        assert not self.classifier.is_mastered(ProgressState(ease_factor=1.99, interval=15, repetitions=3))
        assert not self.classifier.is_mastered(ProgressState(ease_factor=3.0, interval=6, repetitions=2))

    def test_three_hard_successes_master_card(self) -> None:
        state = self.sm2.initial_state()
        for _ in range(3):
            state = self.classifier.classify(self.sm2.review(state, 3, review_time=NOW).new_state)
        assert state.repetitions == 3
        assert state.ease_factor == pytest.approx(2.08)
        assert state.is_mastered

    @pytest.mark.parametrize("first", range(6))
    @pytest.mark.parametrize("second", range(6))
    def test_never_mastered_before_third_success(self, first: int, second: int) -> None:
        state = self.sm2.initial_state()
        for quality in (first, second):
            state = self.classifier.classify(self.sm2.review(state, quality, review_time=NOW).new_state)
            assert not state.is_mastered

    def test_low_ease_blocks_mastery(self) -> None:
        state = ProgressState(ease_factor=1.7, interval=6, repetitions=2)
        state = self.classifier.classify(self.sm2.review(state, 4, review_time=NOW).new_state)
        assert state.repetitions == 3
        assert not state.is_mastered

    def test_custom_thresholds(self) -> None:
        lenient = MasteryClassifier(min_repetitions=2, min_ease=1.8)
        assert lenient.is_mastered(ProgressState(ease_factor=1.8, interval=6, repetitions=2))


# --- Set completion ---


class TestSetCompletion:
    def test_transitions(self) -> None:
        assert MasteryTransition(False, True).became_mastered
        assert MasteryTransition(True, False).lost_mastery
        assert not MasteryTransition(True, True).became_mastered
        assert not MasteryTransition(False, False).lost_mastery
        assert MasteryTransition(False, False, was_reviewed=False).became_reviewed

    def test_became_mastered_increments(self) -> None:
        completion = apply_transition(SetCompletion(total_cards_count=3), MasteryTransition(False, True), NOW)
        assert completion.cards_studied_count == 1
        assert not completion.is_completed

    def test_repeat_reviews_do_not_double_count(self) -> None:
        completion = SetCompletion(total_cards_count=3, cards_studied_count=1)
        completion = apply_transition(completion, MasteryTransition(True, True), NOW)
        completion = apply_transition(completion, MasteryTransition(False, False), NOW)
        assert completion.cards_studied_count == 1

    def test_lost_mastery_never_negative(self) -> None:
        completion = apply_transition(SetCompletion(total_cards_count=3), MasteryTransition(True, False), NOW)
        assert completion.cards_studied_count == 0

    def test_completion_latch(self) -> None:
        completion = SetCompletion(total_cards_count=2, cards_studied_count=1)
        completion = apply_transition(completion, MasteryTransition(False, True), NOW)
        assert completion.is_completed
        assert completion.completed_at == NOW

        later = NOW + timedelta(days=3)
        completion = apply_transition(completion, MasteryTransition(True, False), later)
        assert completion.cards_studied_count == 1
        assert completion.is_completed
        assert completion.completed_at == NOW

    def test_empty_set_never_completes(self) -> None:
        completion = check_completion(SetCompletion(total_cards_count=0), NOW)
        assert not completion.is_completed

    def test_seeded(self) -> None:
        assert SetCompletion.seeded(4, first_card_mastered=True).cards_studied_count == 1
        assert SetCompletion.seeded(4, first_card_mastered=False).cards_studied_count == 0

    def test_single_card_set_completes_on_seed(self) -> None:
        completion = check_completion(SetCompletion.seeded(1, first_card_mastered=True), NOW)
        assert completion.is_completed

    def test_resync_clamps_and_completes(self) -> None:
        completion = SetCompletion(total_cards_count=5, cards_studied_count=4)
        completion = resync_total(completion, 3, NOW)
        assert completion.total_cards_count == 3
        assert completion.cards_studied_count == 3
        assert completion.is_completed

    def test_resync_growth_keeps_latch(self) -> None:
        completion = SetCompletion(total_cards_count=2, cards_studied_count=2, is_completed=True, completed_at=NOW)
        completion = resync_total(completion, 4, NOW + timedelta(days=1))
        assert completion.total_cards_count == 4
        assert completion.is_completed
        assert completion.completed_at == NOW

    @pytest.mark.parametrize("seed", [1, 7, 42])
    def test_count_tracks_mastered_cards(self, seed: int) -> None:
        rng = random.Random(seed)
        sm2 = SM2()
        classifier = MasteryClassifier()
        n_cards = 5
        states = [sm2.initial_state() for _ in range(n_cards)]
        completion = SetCompletion(total_cards_count=n_cards)
        completed_once = False

        for step in range(400):
            idx = rng.randrange(n_cards)
            quality = rng.choice([0, 1, 2, 3, 4, 5, 5, 5, 4, 4])
            before = states[idx]
            after = classifier.classify(sm2.review(before, quality, review_time=NOW).new_state)
            states[idx] = after
            completion = apply_transition(
                completion, MasteryTransition(before.is_mastered, after.is_mastered), NOW
            )

            mastered = sum(1 for state in states if state.is_mastered)
            assert completion.cards_studied_count == mastered, f"step {step}"
            assert 0 <= completion.cards_studied_count <= n_cards
            completed_once = completed_once or completion.is_completed
            assert completion.is_completed == completed_once
