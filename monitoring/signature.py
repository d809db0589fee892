"""
Signature Gate

Single authority for "is this anomaly new". Two verdicts describing the same
anomalous rows produce the same signature; any change in membership, count,
channel or view produces a different one.
"""

import logging

from monitoring.models import Admission

logger = logging.getLogger(__name__)


def build_signature(view_id, verdict):
    channel = verdict.channel.value if verdict.channel else ""
    keys = ",".join(sorted(verdict.row_keys))
    return f"{channel}::{view_id}::{verdict.count}::{keys}::{verdict.detail}"


class SignatureGate:
    def __init__(self, clock):
        self._clock = clock
        self.last_signature = ""
        self.admitted_at = None

    def admit(self, verdict, view_id=""):
        """
        Returns:
            Admission: is_novel is True only if the signature differs from the last admitted one
        """
        signature = build_signature(view_id, verdict)
        if signature == self.last_signature:
            return Admission(False, signature)

        logger.debug(f"New anomaly signature: {signature}")
        self.last_signature = signature
        self.admitted_at = self._clock()
        return Admission(True, signature)

    def clear(self):
        """Forget the last signature so that a recurrence alerts again."""
        if self.last_signature:
            logger.debug(f"Anomaly cleared: {self.last_signature}")
        self.last_signature = ""
        self.admitted_at = None
