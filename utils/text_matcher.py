"""
Text Matching Utility

Whitespace normalisation and the configurable anomaly-text matcher shared by
the table scanner and the message-list probe.
"""

import re

DEFAULT_ANOMALY_PATTERNS = (
    r"mengendifferenz",
    r"mengendifferenz\s+vorhanden",
    r"differenz\s+.*menge",
    r"menge\s+.*differenz",
    r"quantity\s+difference",
    r"difference\s+in\s+quantity",
    r"qty\s+difference",
)

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text):
    """Collapse runs of whitespace and strip. None becomes an empty string."""
    return _WHITESPACE.sub(" ", str(text or "")).strip()


class TextMatcher:
    """
    Case-insensitive matcher over a list of regular expressions.

    Args:
        patterns (iterable of str): Regular expressions, any match counts
    """

    def __init__(self, patterns=DEFAULT_ANOMALY_PATTERNS):
        self.patterns = tuple(patterns)
        self._compiled = [re.compile(p, re.IGNORECASE) for p in self.patterns]

    def matches(self, text):
        t = normalize_text(text)
        if not t:
            return False
        return any(rx.search(t) for rx in self._compiled)

    def __call__(self, text):
        return self.matches(text)
