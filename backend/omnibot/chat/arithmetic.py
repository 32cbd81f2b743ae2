"""Classification of user input as a bare arithmetic expression.

Grammar accepted by :func:`is_arithmetic_expression`::

    expression := (digit | "+" | "-" | "*" | "/" | "^" | "(" | ")"
                  | "." | "," | "e" | "E" | whitespace)+

with at least one digit.  This is a character-class heuristic, not a
parser: ``"3-2 please"`` is rejected only because it happens to contain
letters other than ``e``, while ``"e"`` followed by digits, or unbalanced
parentheses, are accepted and left for the calculator to reject.
"""

import re

ARITHMETIC_PATTERN = re.compile(r"^[\d+\-*/^().,eE\s]+$")
_DIGIT = re.compile(r"\d")


def is_arithmetic_expression(text: str) -> bool:
    """True when ``text`` consists only of arithmetic characters."""
    candidate = text.strip()
    if not candidate:
        return False
    return bool(ARITHMETIC_PATTERN.match(candidate) and _DIGIT.search(candidate))
