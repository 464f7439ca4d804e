from __future__ import annotations

import re
from typing import Any

from .errors import ValidationFailed


PHONE_PATTERN = re.compile(r"^[+]?[0-9][\d]{0,15}$")
PHONE_STRIP = re.compile(r"[\s\-()]")


class FieldErrors:
    """
    Collects field-level problems so a request reports all of them at once.

    Usage:
        errors = FieldErrors()
        qty = errors.integer(payload.get("quantity"), "quantity", minimum=1)
        errors.raise_if_any()
    """

    def __init__(self) -> None:
        self.messages: list[str] = []

    def add(self, message: str) -> None:
        self.messages.append(message)

    def __bool__(self) -> bool:
        return bool(self.messages)

    def raise_if_any(self) -> None:
        if self.messages:
            raise ValidationFailed(self.messages)

    def integer(
        self,
        value: Any,
        field: str,
        *,
        minimum: int | None = None,
        maximum: int | None = None,
        required: bool = True,
        label: str | None = None,
    ) -> int | None:
        """
        Strict integer coercion: rejects floats, bools, decimals and
        scientific notation. Returns None (and records an error) on failure.

        `label` replaces the field name in messages ("Credit limit cannot be
        negative" rather than "credit_limit_cents cannot be negative").
        """
        name = label or field
        if value is None or (isinstance(value, str) and not value.strip()):
            if required:
                self.add(f"{name} is required")
            return None

        parsed: int | None = None
        if isinstance(value, bool):
            parsed = None
        elif isinstance(value, int):
            parsed = value
        elif isinstance(value, str):
            stripped = value.strip()
            # Reject scientific notation and decimal points
            if "e" in stripped.lower() or "." in stripped:
                parsed = None
            else:
                try:
                    parsed = int(stripped)
                except ValueError:
                    parsed = None

        if parsed is None:
            self.add(f"{name} must be an integer")
            return None
        if minimum is not None and parsed < minimum:
            if minimum == 0:
                self.add(f"{name} cannot be negative")
            elif minimum == 1:
                self.add(f"{name} must be greater than 0")
            else:
                self.add(f"{name} must be at least {minimum}")
            return None
        if maximum is not None and parsed > maximum:
            self.add(f"{name} exceeds maximum allowed amount")
            return None
        return parsed

    def text(
        self,
        value: Any,
        field: str,
        *,
        required: bool = True,
        max_length: int | None = None,
        label: str | None = None,
    ) -> str | None:
        name = label or field
        if value is None:
            if required:
                self.add(f"{name} is required")
            return None
        cleaned = str(value).strip()
        if required and not cleaned:
            self.add(f"{name} is required")
            return None
        if max_length is not None and len(cleaned) > max_length:
            self.add(f"{name} must be at most {max_length} characters")
            return None
        return cleaned or None

    def phone(self, value: Any, field: str = "phone") -> str | None:
        cleaned = self.text(value, field, required=False, max_length=32)
        if cleaned is None:
            return None
        if not PHONE_PATTERN.match(PHONE_STRIP.sub("", cleaned)):
            self.add("Invalid phone number format")
            return None
        return cleaned


def as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """ILIKE pattern matching `term` literally anywhere; use with escape=LIKE_ESCAPE."""
    escaped = term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
