"""Short numeric order codes for anonymous tracking.

Codes are drawn at random from a fixed-width numeric space and checked
against the store. This is a collision-retry scheme rather than a counter,
so as the number of live orders approaches the size of the space the
generator fails explicitly with ``CodeSpaceExhausted``.

The existence check does not reserve anything: two callers may draw the
same free code at the same time. The store's unique constraint catches
that case and the caller regenerates.
"""

import random
import string
from typing import Callable

from .errors import CodeSpaceExhausted

DIGITS = string.digits


class OrderCodeGenerator:
    """Generate codes that are free according to ``exists``.

    Args:
        exists: Callable returning True when a code is already in use.
        length: Number of digits per code.
        max_attempts: Candidates to draw before giving up.
        rng: Random source; defaults to ``random.SystemRandom``.
    """

    def __init__(
        self,
        exists: Callable[[str], bool],
        length: int = 4,
        max_attempts: int = 10,
        rng: random.Random | None = None,
    ):
        if length < 1:
            raise ValueError("length must be >= 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.exists = exists
        self.length = length
        self.max_attempts = max_attempts
        self.rng = rng or random.SystemRandom()

    @property
    def space(self) -> int:
        return len(DIGITS) ** self.length

    def candidate(self) -> str:
        return "".join(self.rng.choice(DIGITS) for _ in range(self.length))

    def generate(self) -> str:
        """Return a code not currently used by any order.

        Raises:
            CodeSpaceExhausted: If every drawn candidate was taken.
        """
        for _ in range(self.max_attempts):
            code = self.candidate()
            if not self.exists(code):
                return code
        raise CodeSpaceExhausted(self.max_attempts)
