from typing import Optional, Dict, Any, List
from redis.exceptions import RedisError

class LegislativeDataException(Exception):
    classification: str = "internal_error"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.classification,
            "message": self.message,
            "details": self.details
        }

class QuotaExceededException(LegislativeDataException):
    classification = "quota_exceeded"
    status_code = 503

    def __init__(self, source: str, resets_at: Optional[float] = None):
        self.source = source
        self.resets_at = resets_at
        super().__init__(
            f"Call quota exhausted for {source}",
            {"source": source, "resets_at": resets_at}
        )

class CircuitBreakerOpenException(LegislativeDataException):
    classification = "circuit_open"
    status_code = 503

    def __init__(self, service_name: str, failure_count: int):
        self.source = service_name
        super().__init__(
            f"Circuit breaker open for {service_name}",
            {"source": service_name, "failure_count": failure_count}
        )

class UpstreamException(LegislativeDataException):
    """A remote call failed or returned data that could not be used.

    ``upstream_status`` is None for transport failures (timeouts, connection
    errors, missing credentials). The raw reason is kept on ``reason`` for
    logging only; it is never part of ``to_dict()``.
    """
    classification = "upstream_error"
    status_code = 502

    def __init__(self, source: str, upstream_status: Optional[int], reason: str):
        self.source = source
        self.upstream_status = upstream_status
        self.reason = reason
        super().__init__(
            f"Upstream {source} request failed",
            {"source": source, "upstream_status": upstream_status}
        )

    @property
    def counts_as_failure(self) -> bool:
        """Client-side 4xx rejections do not count against the breaker."""
        status = self.upstream_status
        if status is None or status >= 500:
            return True
        if status in (408, 429):
            return True
        return not 400 <= status < 500

    @property
    def retryable(self) -> bool:
        return self.counts_as_failure

class AllSourcesFailedException(LegislativeDataException):
    classification = "all_sources_failed"
    status_code = 503

    def __init__(self, failures: Dict[str, str]):
        self.failures = failures
        super().__init__(
            "Unable to fetch bill data from any source",
            {"failed_sources": sorted(failures)}
        )

class ValidationException(LegislativeDataException):
    classification = "validation_error"
    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Validation failed for {field}: {reason}",
            {"field": field, "reason": reason}
        )

# Raised by key-value store backends when the store itself is unreachable.
STORE_ERRORS = (RedisError, OSError)

__all__: List[str] = [
    "LegislativeDataException",
    "QuotaExceededException",
    "CircuitBreakerOpenException",
    "UpstreamException",
    "AllSourcesFailedException",
    "ValidationException",
    "STORE_ERRORS",
]
