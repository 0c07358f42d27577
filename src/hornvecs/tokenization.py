"""Whitespace tokenization shared by training and inference."""

import re
from typing import List

# Token separators recognised by every reader: space, tab, vertical tab,
# form feed, carriage return, newline and NUL.
_SEPARATORS = re.compile(r"[ \t\n\v\f\r\0]+")


def tokenize(text: str) -> List[str]:
    """Split one line of text into raw tokens.

    Args:
        text: Input text (a single line, trailing newline allowed)

    Returns:
        List of non-empty tokens
    """
    if not text:
        return []
    return [token for token in _SEPARATORS.split(text) if token]


def is_label(token: str, prefix: str) -> bool:
    """Return True if ``token`` is a label under ``prefix``."""
    return token.startswith(prefix)
