from __future__ import annotations

from typing import Optional

from ..core.constants import MAX_OVERRIDE_REASON_LENGTH
from ..core.exceptions import ReasonRequired, ValidationError


def require_reason(value: Optional[str]) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ReasonRequired("An override reason is required")
    reason = value.strip()
    if len(reason) > MAX_OVERRIDE_REASON_LENGTH:
        raise ValidationError(f"Override reason must be at most {MAX_OVERRIDE_REASON_LENGTH} characters")
    return reason
