"""
Utility modules for the table anomaly monitor.
"""

from .number_parser import parse_locale_number
from .text_matcher import DEFAULT_ANOMALY_PATTERNS, TextMatcher, normalize_text

__all__ = ['parse_locale_number', 'TextMatcher', 'normalize_text', 'DEFAULT_ANOMALY_PATTERNS']
