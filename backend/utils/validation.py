import re
from typing import Optional
from exceptions import ValidationException

class InputValidator:

    ZIP_PATTERN = re.compile(r"^\d{5}(-\d{4})?$")
    REPRESENTATIVE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-]*$")

    CONTROL_CHARS_PATTERN = re.compile(r'[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]')

    @staticmethod
    def sanitize_text(field: str, value: Optional[str], max_length: int) -> Optional[str]:
        if value is None:
            return None

        value = InputValidator.CONTROL_CHARS_PATTERN.sub('', str(value))
        value = re.sub(r'\s+', ' ', value).strip()

        if not value:
            return None

        if len(value) > max_length:
            raise ValidationException(field, f"cannot exceed {max_length} characters")

        return value

    @staticmethod
    def validate_zip(value: Optional[str]) -> Optional[str]:
        value = InputValidator.sanitize_text("zipCode", value, 10)
        if value is None:
            return None
        if not InputValidator.ZIP_PATTERN.match(value):
            raise ValidationException("zipCode", "must be a 5-digit ZIP or ZIP+4")
        return value[:5]

    @staticmethod
    def validate_representative_id(value: Optional[str], max_length: int) -> Optional[str]:
        value = InputValidator.sanitize_text("representativeId", value, max_length)
        if value is None:
            return None
        if not InputValidator.REPRESENTATIVE_ID_PATTERN.match(value):
            raise ValidationException("representativeId", "contains unsupported characters")
        return value

    @staticmethod
    def parse_bounded_int(field: str, value, default: int, minimum: int, maximum: int) -> int:
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        try:
            number = int(str(value).strip())
        except ValueError:
            raise ValidationException(field, "must be an integer")
        if number < minimum or number > maximum:
            raise ValidationException(field, f"must be between {minimum} and {maximum}")
        return number
