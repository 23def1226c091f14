"""Tests for the random order code generator."""

import random

import pytest

from apps.orders.codes import OrderCodeGenerator
from apps.orders.errors import CodeSpaceExhausted


def test_codes_are_fixed_width_digits():
    gen = OrderCodeGenerator(lambda code: False, rng=random.Random(7))
    for _ in range(100):
        code = gen.generate()
        assert len(code) == 4 and code.isdigit()
    assert gen.space == 10_000


def test_leading_zeros_are_kept():
    class Zeros(random.Random):
        def choice(self, seq):
            return "0"

    assert OrderCodeGenerator(lambda code: False, rng=Zeros()).generate() == "0000"


def test_taken_codes_are_skipped():
    taken = set()
    gen = OrderCodeGenerator(lambda code: code in taken, length=2, max_attempts=500, rng=random.Random(1))
    for _ in range(50):
        taken.add(gen.generate())
    assert len(taken) == 50


def test_exhaustion_is_reported_after_max_attempts():
    calls = []

    def exists(code):
        calls.append(code)
        return True

    gen = OrderCodeGenerator(exists, max_attempts=3)
    with pytest.raises(CodeSpaceExhausted) as e:
        gen.generate()
    assert str(e.value) == "CODE_SPACE_EXHAUSTED"
    assert e.value.attempts == 3
    assert len(calls) == 3


@pytest.mark.parametrize("kwargs", [{"length": 0}, {"max_attempts": 0}])
def test_invalid_configuration(kwargs):
    with pytest.raises(ValueError):
        OrderCodeGenerator(lambda code: False, **kwargs)
