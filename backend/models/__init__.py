from .bill import (
    Bill,
    BillStage,
    Chamber,
    SourceName,
    Sponsor,
)
from .health import (
    AcquireResult,
    CircuitState,
    QuotaState,
    SourceHealth,
)
from .query import BillQuery, QueryShape

__all__ = [
    "Bill",
    "BillStage",
    "Chamber",
    "SourceName",
    "Sponsor",

    "AcquireResult",
    "CircuitState",
    "QuotaState",
    "SourceHealth",

    "BillQuery",
    "QueryShape",
]
