"""
Monitor Data Models

Plain value types shared by the monitor engine and its collaborators.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple


class ScreenState(str, Enum):
    INACTIVE = "INACTIVE"  # monitored view not present
    WAITING = "WAITING"  # view present, not yet scannable
    ACTIVE = "ACTIVE"  # scanning and alerting live


class Channel(str, Enum):
    AUTHORITATIVE = "AUTHORITATIVE"
    NUMERIC = "NUMERIC"
    TEXT_FALLBACK = "TEXT_FALLBACK"


CHANNEL_LABELS = {
    Channel.NUMERIC: "Quantity to count",
    Channel.AUTHORITATIVE: "Message list",
    Channel.TEXT_FALLBACK: "Status",
}


@dataclass
class Row:
    """
    One enumerated table row.

    `handle` is opaque and belongs to the probe provider. The derived fields
    are filled by the scanner the first time the row is scanned and stay
    memoized until the scan cache rebuilds.
    """
    handle: Any
    key: str
    derived: bool = False
    quantity: Optional[float] = None
    status_text: str = ""
    channel: Optional[Channel] = None

    @property
    def quantity_parsed(self):
        return self.quantity is not None

    @property
    def is_anomalous(self):
        return self.channel is not None


@dataclass(frozen=True)
class AuthoritativeState:
    active: bool
    signature: str = ""


@dataclass(frozen=True)
class PaginationProgress:
    loaded: int
    total: int

    @property
    def incomplete(self):
        return self.loaded < self.total


@dataclass(frozen=True)
class AnomalyVerdict:
    active: bool
    count: int = 0
    channel: Optional[Channel] = None
    # Keys behind the reported channel, sorted; used for the signature.
    row_keys: Tuple[str, ...] = ()
    # Every row flagged by any channel; used for visual markers.
    marked_keys: Tuple[str, ...] = ()
    detail: str = ""

    @classmethod
    def inactive(cls):
        return cls(active=False)


@dataclass(frozen=True)
class Admission:
    is_novel: bool
    signature: str


@dataclass
class PendingAlert:
    signature: str
    created_at: float
    fired_audio: bool = False


@dataclass
class RampSession:
    deadline: float
    last_observed_size: int
    started_at: float
    tries_used: int = 0
    no_growth_streak: int = 0
    active: bool = True


@dataclass(frozen=True)
class ChangeNotice:
    """A coalescable change report. `source_ids` lists ids of the changed node's ancestors."""
    source_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class MonitorStatus:
    screen_state: ScreenState = ScreenState.INACTIVE
    has_active_anomaly: bool = False
    count: int = 0
    source_channel: Optional[Channel] = None
    banner_visible: bool = False
    signature: str = field(default="", compare=False)

    @property
    def source_label(self):
        return CHANNEL_LABELS.get(self.source_channel, "")
