"""Constants for traffic classification.

Defines the traffic categories, protocol encoding, normalisation scales and
well-known service ports shared by the feature normalizer, the synthetic
flow generator and the classification engine.
"""

from enum import Enum, IntEnum
from typing import Final


class TrafficCategory(str, Enum):
    """Traffic categories a flow can be assigned to.

    Declaration order is the synthetic generator's category index and the
    classifier's output index. Do not reorder.
    """

    WEB = "web"
    VIDEO = "video"
    FILE_TRANSFER = "file_transfer"
    GAMING = "gaming"
    VOIP = "voip"
    DATABASE = "database"
    EMAIL = "email"
    UNKNOWN = "unknown"

    @property
    def index(self) -> int:
        """Ordinal position of this category."""
        return CATEGORY_ORDER.index(self)

    @property
    def label(self) -> str:
        """Human-readable display name."""
        return CATEGORY_LABELS[self]

    @classmethod
    def from_index(cls, index: int) -> "TrafficCategory":
        """Look up a category by ordinal position.

        Raises:
            ValueError: If index is outside 0..7.
        """
        if not 0 <= index < len(CATEGORY_ORDER):
            raise ValueError(
                f"Category index {index} out of range 0..{len(CATEGORY_ORDER) - 1}"
            )
        return CATEGORY_ORDER[index]


class FlowProtocol(IntEnum):
    """Transport/application protocol of a flow, encoded by ordinal."""

    TCP = 0
    UDP = 1
    HTTP = 2
    HTTPS = 3


CATEGORY_ORDER: Final[tuple[TrafficCategory, ...]] = tuple(TrafficCategory)
NUM_CATEGORIES: Final[int] = len(CATEGORY_ORDER)

CATEGORY_LABELS: Final[dict[TrafficCategory, str]] = {
    TrafficCategory.WEB: "Web Browsing",
    TrafficCategory.VIDEO: "Video Streaming",
    TrafficCategory.FILE_TRANSFER: "File Transfer",
    TrafficCategory.GAMING: "Online Gaming",
    TrafficCategory.VOIP: "Voice/Video Call",
    TrafficCategory.DATABASE: "Database Query",
    TrafficCategory.EMAIL: "Email",
    TrafficCategory.UNKNOWN: "Unknown",
}

# Feature vector layout
FEATURE_COUNT: Final[int] = 8

# Normalisation scales
MAX_PACKET_SIZE: Final[float] = 2000.0
MAX_PROTOCOL_ORDINAL: Final[float] = float(max(FlowProtocol))
MAX_PORT: Final[float] = 65535.0
MAX_BYTES_PER_SECOND: Final[float] = 10_000_000.0
MAX_PACKETS_PER_SECOND: Final[float] = 2000.0
MAX_CONNECTION_DURATION: Final[float] = 3600.0  # seconds

# Well-known service ports used by the synthetic profiles
HTTP_PORT: Final[int] = 80
HTTPS_PORT: Final[int] = 443
FTP_PORT: Final[int] = 21
SMTP_PORT: Final[int] = 25
SMTP_SUBMISSION_PORT: Final[int] = 587
SIP_PORT: Final[int] = 5060
MYSQL_PORT: Final[int] = 3306
POSTGRES_PORT: Final[int] = 5432
GAME_SERVER_PORT_BASE: Final[int] = 27015  # Source engine dedicated servers

WEB_PORTS: Final[tuple[int, ...]] = (HTTP_PORT, HTTPS_PORT)
DATABASE_PORTS: Final[tuple[int, ...]] = (MYSQL_PORT, POSTGRES_PORT)
EMAIL_PORTS: Final[tuple[int, ...]] = (SMTP_PORT, SMTP_SUBMISSION_PORT)

# Client side ephemeral range used by the synthetic profiles
CLIENT_PORT_MIN: Final[int] = 50000
CLIENT_PORT_SPAN: Final[int] = 15000

# Unregistered/dynamic range used for unclassifiable flows
UNKNOWN_PORT_MIN: Final[int] = 1024
UNKNOWN_PORT_SPAN: Final[int] = 64000
