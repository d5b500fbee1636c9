"""
Math Problem Supplier — produces the problems a challenge is built from.

The challenge gate treats this as an opaque, stateless source: it asks for
``generate(count, difficulty)`` and gets back question/answer pairs. Every
problem kind here resolves to an integer so answers can be compared exactly.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol


class Difficulty(str, Enum):
    MEDIUM = "medium"
    HARD = "hard"


class ProblemKind(str, Enum):
    ARITHMETIC = "arithmetic"
    ALGEBRA = "algebra"
    GEOMETRY = "geometry"
    SEQUENCE = "sequence"
    WORD = "word"


@dataclass(frozen=True)
class Problem:
    question: str
    answer: int
    kind: ProblemKind = ProblemKind.ARITHMETIC

    def public(self) -> dict:
        """What the UI may see — never the answer."""
        return {"question": self.question, "kind": self.kind.value}


class ProblemSupplier(Protocol):
    def generate(self, count: int, difficulty: Difficulty) -> List[Problem]: ...


class MathProblemGenerator:
    """
    Random problem generator. Pass a seeded ``random.Random`` for
    reproducible sets.
    """

    def __init__(self, rng: Optional[random.Random] = None,
                 kinds: Optional[List[ProblemKind]] = None):
        self._rng = rng or random.Random()
        self._kinds = kinds or list(ProblemKind)
        self._builders: Dict[ProblemKind, Callable[[Difficulty], Problem]] = {
            ProblemKind.ARITHMETIC: self._arithmetic,
            ProblemKind.ALGEBRA: self._algebra,
            ProblemKind.GEOMETRY: self._geometry,
            ProblemKind.SEQUENCE: self._sequence,
            ProblemKind.WORD: self._word,
        }

    def generate(self, count: int, difficulty: Difficulty = Difficulty.MEDIUM) -> List[Problem]:
        difficulty = Difficulty(difficulty)
        return [self._builders[self._rng.choice(self._kinds)](difficulty) for _ in range(count)]

    # ------------------------------------------------------------------
    # Problem kinds
    # ------------------------------------------------------------------

    def _arithmetic(self, difficulty: Difficulty) -> Problem:
        r = self._rng
        if difficulty == Difficulty.HARD:
            a, b, c = r.randint(15, 39), r.randint(8, 25), r.randint(5, 16)
            return Problem(f"Calculate: {a} × {b} + {c}", a * b + c, ProblemKind.ARITHMETIC)
        a, b = r.randint(10, 59), r.randint(5, 34)
        if r.random() < 0.5:
            return Problem(f"Calculate: {a} + {b}", a + b, ProblemKind.ARITHMETIC)
        return Problem(f"Calculate: {a} - {b}", a - b, ProblemKind.ARITHMETIC)

    def _algebra(self, difficulty: Difficulty) -> Problem:
        r = self._rng
        if difficulty == Difficulty.HARD:
            a, b, x = r.randint(2, 9), r.randint(5, 19), r.randint(3, 14)
        else:
            a, b, x = r.randint(2, 6), r.randint(3, 12), r.randint(2, 9)
        return Problem(f"If {a}x + {b} = {a * x + b}, what is x?", x, ProblemKind.ALGEBRA)

    def _geometry(self, difficulty: Difficulty) -> Problem:
        r = self._rng
        if difficulty == Difficulty.HARD:
            # even base keeps the triangle area whole
            base, height = 2 * r.randint(2, 8), r.randint(3, 12)
            return Problem(
                f"What is the area of a triangle with base {base} and height {height}?",
                base * height // 2,
                ProblemKind.GEOMETRY,
            )
        if r.random() < 0.5:
            length, width = r.randint(3, 10), r.randint(2, 7)
            return Problem(
                f"What is the area of a rectangle with length {length} and width {width}?",
                length * width,
                ProblemKind.GEOMETRY,
            )
        side = r.randint(3, 10)
        return Problem(
            f"What is the perimeter of a square with side length {side}?",
            side * 4,
            ProblemKind.GEOMETRY,
        )

    def _sequence(self, difficulty: Difficulty) -> Problem:
        r = self._rng
        if difficulty == Difficulty.HARD:
            seq = [r.randint(1, 3), r.randint(2, 4)]
            while len(seq) < 5:
                seq.append(seq[-1] + seq[-2])
            nxt = seq[-1] + seq[-2]
        else:
            start, step = r.randint(2, 6), r.randint(2, 5)
            seq = [start + step * i for i in range(4)]
            nxt = start + step * 4
        return Problem(
            f"Complete the sequence: {', '.join(map(str, seq))}, ___", nxt, ProblemKind.SEQUENCE
        )

    def _word(self, difficulty: Difficulty) -> Problem:
        r = self._rng
        if difficulty == Difficulty.HARD:
            mean, spread = r.randint(20, 40), r.randint(2, 9)
            ages = [mean - spread, mean, mean + spread]
            return Problem(
                f"Three people are {', '.join(map(str, ages))} years old. "
                f"What is their average age?",
                mean,
                ProblemKind.WORD,
            )
        apples, eaten = r.randint(5, 12), r.randint(2, 4)
        return Problem(
            f"You have {apples} apples and eat {eaten}. How many are left?",
            apples - eaten,
            ProblemKind.WORD,
        )
