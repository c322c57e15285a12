from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any
from enum import Enum

class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

@dataclass
class SourceHealth:
    """Per-upstream failure tracking; mutated only by that source's breaker."""
    source: str
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    last_failure_at: Optional[float] = None
    last_success_at: Optional[float] = None
    opened_at: Optional[float] = None
    streak_started_at: Optional[float] = None

    def snapshot(self) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data.pop("streak_started_at")
        return data

@dataclass
class QuotaState:
    source: str
    hard_limit: int
    period_start: float
    calls_used: int = 0

    @property
    def remaining(self) -> int:
        return max(self.hard_limit - self.calls_used, 0)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuotaState":
        return cls(
            source=data["source"],
            hard_limit=int(data["hard_limit"]),
            period_start=float(data["period_start"]),
            calls_used=int(data.get("calls_used", 0)),
        )

@dataclass(frozen=True)
class AcquireResult:
    allowed: bool
    remaining: int
