"""
Anomaly Scanner

Runs the multi-channel detection policy over the table rows and the
application's message list:

1. A row whose quantity parses is anomalous when the quantity is negative
   (NUMERIC). A row that fails to parse falls through to rule 2 on its own.
2. The row's status text is checked against the anomaly-text matcher when
   the message list reports an anomaly or the row's quantity did not parse
   (TEXT_FALLBACK). A row is flagged by at most one channel.
3. The reported channel is NUMERIC if any row is negative, otherwise
   AUTHORITATIVE if the message list is active, otherwise TEXT_FALLBACK if any
   row matched by text, otherwise the verdict is inactive.
"""

import logging

from monitoring.models import AnomalyVerdict, Channel
from utils.number_parser import parse_locale_number
from utils.text_matcher import TextMatcher, normalize_text

logger = logging.getLogger(__name__)


class AnomalyScanner:
    def __init__(self, probes, matcher=None):
        self._probes = probes
        self.matcher = matcher or TextMatcher()

    def scan(self, rows, authoritative=None):
        """
        Evaluate rows and the authoritative channel.

        Args:
            rows (list of Row): Rows from the scan cache; derived fields are filled in place
            authoritative (AuthoritativeState or None): None when the channel is unavailable

        Returns:
            AnomalyVerdict: Unified verdict
        """
        authoritative_active = bool(authoritative and authoritative.active)

        numeric_keys = []
        text_keys = []
        for row in rows:
            self._derive(row)
            channel = self._classify(row, authoritative_active)
            row.channel = channel
            if channel is Channel.NUMERIC:
                numeric_keys.append(row.key)
            elif channel is Channel.TEXT_FALLBACK:
                text_keys.append(row.key)

        marked = tuple(sorted(set(numeric_keys) | set(text_keys)))

        if numeric_keys:
            keys = tuple(sorted(set(numeric_keys)))
            return AnomalyVerdict(True, len(keys), Channel.NUMERIC, keys, marked)

        if authoritative_active:
            keys = tuple(sorted(set(text_keys)))
            return AnomalyVerdict(
                True, max(len(keys), 1), Channel.AUTHORITATIVE, keys, marked,
                detail=authoritative.signature,
            )

        if text_keys:
            keys = tuple(sorted(set(text_keys)))
            return AnomalyVerdict(True, len(keys), Channel.TEXT_FALLBACK, keys, marked)

        return AnomalyVerdict.inactive()

    def _derive(self, row):
        if row.derived:
            return
        try:
            row.quantity = parse_locale_number(self._probes.read_numeric_field(row.handle))
        except Exception as e:
            logger.debug(f"Quantity unreadable for row {row.key}: {e}")
            row.quantity = None
        try:
            row.status_text = normalize_text(self._probes.read_status_field(row.handle))
        except Exception as e:
            logger.debug(f"Status unreadable for row {row.key}: {e}")
            row.status_text = ""
        row.derived = True

    def _classify(self, row, authoritative_active):
        if row.quantity_parsed and row.quantity < 0:
            return Channel.NUMERIC
        if authoritative_active or not row.quantity_parsed:
            if self.matcher.matches(row.status_text):
                return Channel.TEXT_FALLBACK
        return None
