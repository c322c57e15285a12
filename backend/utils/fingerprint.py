import hashlib
import json
from typing import Dict, Any

def query_fingerprint(params: Dict[str, Any], prefix: str = "bills:") -> str:
    """Deterministic cache key for a set of normalized query parameters.

    Keys are sorted and absent values dropped, so parameter order and
    explicit-None versus missing never change the result.
    """
    normalized = {k: v for k, v in params.items() if v is not None}
    canonical = json.dumps(normalized, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"{prefix}{digest[:40]}"

def compute_etag(body: str) -> str:
    digest = hashlib.sha256(body.encode("utf-8")).hexdigest()
    return f'"{digest[:32]}"'

def etag_matches(if_none_match: str, etag: str) -> bool:
    """RFC 9110 weak comparison over an If-None-Match header value."""
    if not if_none_match or not etag:
        return False
    candidates = [c.strip() for c in if_none_match.split(",")]
    if "*" in candidates:
        return True
    bare = etag[2:] if etag.startswith("W/") else etag
    for candidate in candidates:
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate == bare:
            return True
    return False
