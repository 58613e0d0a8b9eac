from dataclasses import dataclass
from enum import Enum


class AlertSeverity(str, Enum):
    SOFT = "soft"
    HARD = "hard"


@dataclass(frozen=True)
class AlertEvent:
    """A budget threshold crossing. Never persisted."""

    user_id: str
    provider_type: str
    severity: AlertSeverity
    current_spend: float
    limit: float
    title: str
    body: str

    @property
    def priority(self) -> str:
        return "high" if self.severity == AlertSeverity.HARD else "normal"
