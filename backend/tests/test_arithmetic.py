"""Tests for arithmetic input detection."""

import pytest

from omnibot.chat.arithmetic import is_arithmetic_expression


@pytest.mark.parametrize(
    "text",
    ["2 + 3 * 4", " (1.5 + 2) / 3 ", "2^8", "1e3 - 1", "1,000 * 2", "(1 + 2"],
)
def test_accepts_arithmetic(text: str) -> None:
    assert is_arithmetic_expression(text)


@pytest.mark.parametrize(
    "text",
    ["", "   ", "+-*/", "e", "what is 2 + 2", "3-2 please", "sqrt(16)", "10 % 3"],
)
def test_rejects_everything_else(text: str) -> None:
    assert not is_arithmetic_expression(text)
