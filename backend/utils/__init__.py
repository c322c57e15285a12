from .fingerprint import query_fingerprint, compute_etag, etag_matches
from .retry import retry_async

__all__ = [
    "query_fingerprint",
    "compute_etag",
    "etag_matches",
    "retry_async",
]
