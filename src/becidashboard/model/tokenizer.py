"""
Grouped-delimiter tokenizer for multi-value entity fields.

Grammar::

    field  := token (DELIM token)*
    token  := (CHAR | group)*
    group  := '(' token-or-delims ')' | '[' ... ']' | '{' ... '}'

Delimiters only split at nesting depth 0, so ``"Tuna (Albacore, Skipjack), Salmon"``
yields ``["Tuna (Albacore, Skipjack)", "Salmon"]``.
"""
from __future__ import annotations

import logging
from typing import Optional

from becidashboard.model.errors import FilterParseAnomaly

logger = logging.getLogger(__name__)

DEFAULT_DELIMITERS = ",;"

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_OPENERS.values())


def split_grouped(
    text: Optional[str],
    delimiters: str = DEFAULT_DELIMITERS,
    strict: bool = False,
) -> list[str]:
    """
    Split ``text`` on ``delimiters`` outside of any bracket group.

    Tokens are stripped and empty tokens dropped. A token with an unmatched
    closing bracket, or a group still open at the end of input, is malformed:
    it is skipped with a warning, or raises ``FilterParseAnomaly`` if ``strict``.
    """
    if not text:
        return []

    tokens: list[str] = []
    buf: list[str] = []
    expected: list[str] = []
    problem: Optional[str] = None

    def emit() -> None:
        nonlocal problem
        token = "".join(buf).strip()
        buf.clear()
        if problem is not None:
            anomaly = FilterParseAnomaly(text, token, problem)
            problem = None
            if strict:
                raise anomaly
            logger.warning(str(anomaly))
            return
        if token:
            tokens.append(token)

    for ch in text:
        if ch in _OPENERS:
            expected.append(_OPENERS[ch])
        elif ch in _CLOSERS:
            if not expected:
                problem = f"unmatched '{ch}'"
            elif expected[-1] != ch:
                problem = f"expected '{expected[-1]}' but found '{ch}'"
                expected.pop()
            else:
                expected.pop()
        elif ch in delimiters and not expected:
            emit()
            continue
        buf.append(ch)

    if expected:
        problem = f"unclosed group, expected '{expected[-1]}'"
    emit()
    return tokens
