from enum import Enum
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict
from config import QUERY_LIMITS, CACHE_CONFIG
from exceptions import ValidationException
from models.bill import SourceName, BillStage
from utils.fingerprint import query_fingerprint
from utils.validation import InputValidator

class QueryShape(Enum):
    SINGLE_SOURCE = "single_source"
    MIXED = "mixed"
    REPRESENTATIVE = "representative"

class BillQuery(BaseModel):
    """Normalized inbound bill query. Build with ``from_params``."""
    model_config = ConfigDict(frozen=True)

    source: Optional[SourceName] = None
    zip_code: Optional[str] = None
    representative_id: Optional[str] = None
    topic: Optional[str] = None
    status: Optional[BillStage] = None
    limit: int = QUERY_LIMITS.DEFAULT_LIMIT
    offset: int = 0

    @classmethod
    def from_params(
        cls,
        source: Optional[str] = None,
        zip_code: Optional[str] = None,
        representative_id: Optional[str] = None,
        topic: Optional[str] = None,
        status: Optional[str] = None,
        limit=None,
        offset=None,
    ) -> "BillQuery":
        source_value = InputValidator.sanitize_text("source", source, 32)
        parsed_source = None
        if source_value is not None and source_value.lower() not in ("all", "mixed"):
            try:
                parsed_source = SourceName(source_value.lower())
            except ValueError:
                raise ValidationException("source", f"must be one of {[s.value for s in SourceName]}")

        status_value = InputValidator.sanitize_text("status", status, 32)
        parsed_status = None
        if status_value is not None:
            try:
                parsed_status = BillStage(status_value.lower())
            except ValueError:
                raise ValidationException("status", f"must be one of {[s.value for s in BillStage]}")

        zip_value = InputValidator.validate_zip(zip_code)
        rep_value = InputValidator.validate_representative_id(
            representative_id, QUERY_LIMITS.MAX_REPRESENTATIVE_ID_LENGTH
        )
        if zip_value and rep_value:
            raise ValidationException("zipCode", "cannot be combined with representativeId")

        return cls(
            source=parsed_source,
            zip_code=zip_value,
            representative_id=rep_value,
            topic=InputValidator.sanitize_text("topic", topic, QUERY_LIMITS.MAX_TOPIC_LENGTH),
            status=parsed_status,
            limit=InputValidator.parse_bounded_int(
                "limit", limit, QUERY_LIMITS.DEFAULT_LIMIT, 1, QUERY_LIMITS.MAX_LIMIT
            ),
            offset=InputValidator.parse_bounded_int("offset", offset, 0, 0, QUERY_LIMITS.MAX_OFFSET),
        )

    @property
    def shape(self) -> QueryShape:
        if self.zip_code or self.representative_id:
            return QueryShape.REPRESENTATIVE
        if self.source is not None:
            return QueryShape.SINGLE_SOURCE
        return QueryShape.MIXED

    def normalized_params(self) -> Dict[str, Any]:
        return {
            "source": self.source.value if self.source else None,
            "topic": self.topic.lower() if self.topic else None,
            "status": self.status.value if self.status else None,
            "zip": self.zip_code,
            "representativeId": self.representative_id,
            "limit": self.limit,
            "offset": self.offset,
        }

    def fingerprint(self) -> str:
        return query_fingerprint(self.normalized_params(), prefix=CACHE_CONFIG.KEY_PREFIX)
