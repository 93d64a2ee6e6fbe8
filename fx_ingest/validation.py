"""Validation helpers for request parameters."""

from __future__ import annotations

from fx_ingest.errors import ValidationError
from fx_ingest.services.fx_conversion import MAX_CODE_LENGTH, MIN_CODE_LENGTH, is_valid_code


def validate_currency_code(value: str | None, *, field: str = "code") -> str:
    """Ensure the provided currency code is well formed and return it uppercased."""

    if value is None or not str(value).strip():
        raise ValidationError(f"'{field}' is required.", payload={"field": field})

    normalized = str(value).strip().upper()
    if not is_valid_code(normalized):
        raise ValidationError(
            f"Invalid currency code '{normalized}'. Use {MIN_CODE_LENGTH}-{MAX_CODE_LENGTH} "
            "ASCII letters or digits.",
            payload={"field": field, "code": normalized},
        )
    return normalized
