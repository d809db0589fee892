"""
Number Parsing Utility

Parses quantities the way they are displayed by the monitored table
(e.g. "-0,15", "1.234,56", "1,234.56", "0,150-") into floats.
"""

import math
import re

_ALLOWED_CHARS = re.compile(r"[^\d,.\-+\s']")
_SEPARATOR_NOISE = re.compile(r"[\s']")


def parse_locale_number(text):
    """
    Parse a locale formatted number.

    The right-most comma or dot is taken as the decimal separator when both
    appear; the other one is treated as a thousands separator. Whitespace,
    non-breaking spaces and apostrophes are thousands separators too.

    Args:
        text (str): Raw cell text

    Returns:
        float or None: Parsed value, None if the text does not hold a finite number
    """
    if text is None:
        return None

    s = str(text).replace("\u00a0", " ").replace("\u2212", "-").strip()
    if not s:
        return None

    s = _ALLOWED_CHARS.sub("", s).strip()
    s = _SEPARATOR_NOISE.sub("", s)
    if not s:
        return None

    # SAP style trailing sign: "0,150-"
    if s.endswith("-") and not s.startswith("-"):
        s = "-" + s[:-1]

    last_comma = s.rfind(",")
    last_dot = s.rfind(".")

    if last_comma != -1 and last_dot != -1:
        decimal_sep = "," if last_comma > last_dot else "."
    elif last_comma != -1:
        decimal_sep = ","
    elif last_dot != -1:
        decimal_sep = "."
    else:
        decimal_sep = ""

    if decimal_sep:
        thousands_sep = "." if decimal_sep == "," else ","
        s = s.replace(thousands_sep, "")
        if decimal_sep == ",":
            s = s.replace(",", ".")

    if s.startswith("+"):
        s = s[1:]

    try:
        value = float(s)
    except ValueError:
        return None

    if not math.isfinite(value):
        return None
    return value
