"""Tests for the challenge gate, answer parsing and the problem generator."""

import random

import pytest

from blockd.blocking.challenges import (
    ChallengeGate,
    ChallengePurpose,
    SubmitOutcome,
    parse_answer,
)
from blockd.blocking.problems import Difficulty, MathProblemGenerator, ProblemKind
from blockd.errors import ChallengeNotFound, ValidationError


@pytest.fixture
def gate(clock, supplier):
    return ChallengeGate(clock, supplier, ttl_s=600)


def _answers(n):
    return [i + 1 for i in range(n)]


# ── parse_answer ────────────────────────────────────────────────────────────

class TestParseAnswer:
    @pytest.mark.parametrize("raw, expected", [
        (12, 12),
        (12.0, 12),
        ("12", 12),
        (" 12 ", 12),
        ("12.0", 12),
        (-3, -3),
    ])
    def test_accepted_forms(self, raw, expected):
        assert parse_answer(raw) == expected

    def test_non_integral_passes_through(self):
        assert parse_answer(2.5) == 2.5

    @pytest.mark.parametrize("raw", ["", "  ", "twelve", None, True, [], float("nan"), "inf"])
    def test_rejected_forms(self, raw):
        with pytest.raises(ValidationError):
            parse_answer(raw)


# ── ChallengeGate ───────────────────────────────────────────────────────────

class TestChallengeGate:
    def test_create_hides_answers(self, gate):
        c = gate.create_challenge(2, subject_domain="reddit.com")
        public = c.public()
        assert public["challengeId"] == c.id
        assert public["attemptsRemaining"] == 3
        assert public["domain"] == "reddit.com"
        assert len(public["problems"]) == 2
        assert all("answer" not in p for p in public["problems"])

    def test_ids_are_unique(self, gate):
        ids = {gate.create_challenge(1).id for _ in range(20)}
        assert len(ids) == 20

    def test_correct_answers_solve_and_consume(self, gate):
        c = gate.create_challenge(2, subject_domain="reddit.com")
        result = gate.submit(c.id, _answers(2))
        assert result.outcome == SubmitOutcome.SOLVED
        assert result.solved
        assert result.subject_domain == "reddit.com"
        with pytest.raises(ChallengeNotFound):
            gate.submit(c.id, _answers(2))

    def test_string_answers_accepted(self, gate):
        c = gate.create_challenge(2)
        assert gate.submit(c.id, ["1", "2.0"]).solved

    def test_wrong_answer_decrements_attempts(self, gate):
        c = gate.create_challenge(2)
        result = gate.submit(c.id, [1, 99])
        assert result.outcome == SubmitOutcome.INCORRECT
        assert result.attempts_remaining == 2
        assert result.wrong_indexes == [1]
        assert gate.get(c.id) is not None

    def test_exhaustion_removes_challenge(self, gate):
        c = gate.create_challenge(1)
        outcomes = [gate.submit(c.id, [0]).outcome for _ in range(3)]
        assert outcomes == [SubmitOutcome.INCORRECT, SubmitOutcome.INCORRECT, SubmitOutcome.EXHAUSTED]
        with pytest.raises(ChallengeNotFound):
            gate.submit(c.id, [1])

    def test_exhaustion_fails_pending_siblings(self, gate):
        first = gate.create_challenge(1, subject_domain="reddit.com")
        spare = gate.create_challenge(1, subject_domain="reddit.com")
        other = gate.create_challenge(1, subject_domain="youtube.com")
        focus = gate.create_challenge(1, purpose=ChallengePurpose.FOCUS_DEACTIVATION)
        for _ in range(3):
            result = gate.submit(first.id, [0])
        assert result.outcome == SubmitOutcome.EXHAUSTED
        assert gate.get(spare.id) is None
        with pytest.raises(ChallengeNotFound):
            gate.submit(spare.id, [1])
        assert gate.get(other.id) is not None
        assert gate.get(focus.id) is not None

    def test_solved_at_most_once_with_retries(self, gate):
        c = gate.create_challenge(1)
        gate.submit(c.id, [0])
        assert gate.submit(c.id, [1]).solved
        with pytest.raises(ChallengeNotFound):
            gate.submit(c.id, [1])

    def test_wrong_count_is_incorrect(self, gate):
        c = gate.create_challenge(2)
        assert gate.submit(c.id, [1]).outcome == SubmitOutcome.INCORRECT
        assert gate.submit(c.id, [1, 2, 3]).outcome == SubmitOutcome.INCORRECT

    def test_non_numeric_answer_does_not_consume_attempt(self, gate):
        c = gate.create_challenge(1)
        with pytest.raises(ValidationError):
            gate.submit(c.id, ["banana"])
        assert gate.get(c.id).attempts_remaining == 3

    def test_unknown_id(self, gate):
        with pytest.raises(ChallengeNotFound):
            gate.submit("nope", [1])

    def test_purpose_mismatch_is_not_found_and_untouched(self, gate):
        c = gate.create_challenge(1, purpose=ChallengePurpose.FOCUS_DEACTIVATION)
        with pytest.raises(ChallengeNotFound):
            gate.submit(c.id, [1], purpose=ChallengePurpose.UNBLOCK)
        assert gate.get(c.id).attempts_remaining == 3
        assert gate.submit(c.id, [1], purpose=ChallengePurpose.FOCUS_DEACTIVATION).solved

    def test_expired_challenge_rejected(self, gate, clock):
        c = gate.create_challenge(1)
        clock.advance(601)
        with pytest.raises(ChallengeNotFound, match="expired"):
            gate.submit(c.id, [1])
        assert gate.get(c.id) is None

    def test_purge_expired(self, gate, clock):
        gate.create_challenge(1)
        clock.advance(300)
        fresh = gate.create_challenge(1)
        clock.advance(301)
        assert gate.purge_expired() == 1
        assert [c.id for c in gate.pending()] == [fresh.id]

    def test_difficulty_reaches_supplier(self, gate, supplier):
        gate.create_challenge(3, difficulty=Difficulty.HARD)
        assert supplier.calls[-1] == (3, Difficulty.HARD)

    @pytest.mark.parametrize("count, attempts", [(0, 3), (1, 0)])
    def test_invalid_parameters(self, gate, count, attempts):
        with pytest.raises(ValidationError):
            gate.create_challenge(count, max_attempts=attempts)


# ── MathProblemGenerator ────────────────────────────────────────────────────

class TestMathProblemGenerator:
    @pytest.mark.parametrize("difficulty", list(Difficulty))
    @pytest.mark.parametrize("kind", list(ProblemKind))
    def test_every_kind_yields_integer_answers(self, kind, difficulty):
        gen = MathProblemGenerator(rng=random.Random(7), kinds=[kind])
        for problem in gen.generate(25, difficulty):
            assert problem.kind == kind
            assert isinstance(problem.answer, int)
            assert problem.question

    def test_seeded_generator_is_reproducible(self):
        a = MathProblemGenerator(rng=random.Random(42)).generate(5, Difficulty.HARD)
        b = MathProblemGenerator(rng=random.Random(42)).generate(5, Difficulty.HARD)
        assert a == b

    def test_algebra_answer_solves_equation(self):
        gen = MathProblemGenerator(rng=random.Random(3), kinds=[ProblemKind.ALGEBRA])
        for problem in gen.generate(10, Difficulty.MEDIUM):
            # "If {a}x + {b} = {c}, what is x?"
            lhs, rhs = problem.question[3:].split(", what")[0].split(" = ")
            a, b = lhs.split("x + ")
            assert int(a) * problem.answer + int(b) == int(rhs)

    def test_accepts_difficulty_strings(self):
        assert len(MathProblemGenerator().generate(2, "hard")) == 2
