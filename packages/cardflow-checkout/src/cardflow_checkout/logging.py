"""
Logging helpers that keep card data out of log records.

Card numbers, CVCs and processor credentials must never be written to logs
in clear text. Modules log through the standard ``logging`` module and pass
anything derived from payer input through these helpers first.

Usage:
    from cardflow_checkout.logging import mask_card_number, mask_sensitive_data

    logger.info("Tokenizing card %s", mask_card_number(card.number))
    logger.debug("Request params: %s", mask_sensitive_data(params))
"""
from __future__ import annotations

import re
from typing import Any, Optional, Sequence

MASK_PATTERN = "***"
MAX_LOG_MESSAGE_LENGTH = 2000

SENSITIVE_FIELDS: frozenset[str] = frozenset({
    "number",
    "card_number",
    "cardnumber",
    "cvc",
    "cvv",
    "exp_month",
    "exp_year",
    "expiration_month",
    "expiration_year",
    "password",
    "signature",
    "authorization",
})

# Substrings that mark a key as sensitive wherever they appear.
_SENSITIVE_FRAGMENTS = ("secret", "token", "key", "credential", "cvc", "card[number]")

_INLINE_PATTERNS = [
    # Publishable/secret keys
    (re.compile(r"\b(sk_live_|sk_test_|pk_live_|pk_test_|rzp_live_|rzp_test_)[a-zA-Z0-9]+\b"), r"\1***"),
    # Bearer and basic auth
    (re.compile(r"(Bearer\s+)[a-zA-Z0-9._-]+", re.IGNORECASE), r"\1***"),
    (re.compile(r"(Basic\s+)[a-zA-Z0-9+/=]+", re.IGNORECASE), r"\1***"),
    # Anything that looks like a PAN (13-19 digits, optionally grouped)
    (re.compile(r"\b(?:\d[ -]?){9,15}(\d{4})\b"), r"****\1"),
]


def mask_value(value: str, show_chars: int = 0) -> str:
    """Mask a sensitive value, optionally keeping the last ``show_chars``."""
    if not value or show_chars <= 0 or len(value) <= show_chars:
        return MASK_PATTERN
    return f"{MASK_PATTERN}{value[-show_chars:]}"


def mask_card_number(number: Optional[str]) -> str:
    """Render a card number as ``****4242``."""
    if not number:
        return MASK_PATTERN
    digits = "".join(ch for ch in number if ch.isdigit())
    if len(digits) < 4:
        return MASK_PATTERN
    return f"****{digits[-4:]}"


def is_sensitive_key(key: str) -> bool:
    """Match plain keys and bracketed form keys such as ``card[exp_month]``."""
    key_lower = key.lower().replace("-", "_")
    leaf = key_lower.rsplit("[", 1)[-1].rstrip("]")
    return key_lower in SENSITIVE_FIELDS or leaf in SENSITIVE_FIELDS or any(
        fragment in key_lower for fragment in _SENSITIVE_FRAGMENTS
    )


def mask_sensitive_data(
    data: Any,
    additional_fields: Optional[Sequence[str]] = None,
    _depth: int = 0,
    _max_depth: int = 10,
) -> Any:
    """Recursively mask sensitive data in a data structure.

    Args:
        data: The data structure to mask (dict, list, or scalar)
        additional_fields: Additional field names to mask

    Returns:
        Copy of data with sensitive values masked
    """
    if _depth > _max_depth:
        return data

    if isinstance(data, dict):
        result = {}
        for key, value in data.items():
            if is_sensitive_key(str(key)) or (additional_fields and key in additional_fields):
                result[key] = MASK_PATTERN
            else:
                result[key] = mask_sensitive_data(value, additional_fields, _depth + 1, _max_depth)
        return result

    if isinstance(data, (list, tuple)):
        return type(data)(
            mask_sensitive_data(item, additional_fields, _depth + 1, _max_depth)
            for item in data
        )

    if isinstance(data, str):
        return mask_inline(data)

    return data


def mask_inline(text: str) -> str:
    """Mask keys, auth headers and card numbers embedded in free text."""
    if len(text) > MAX_LOG_MESSAGE_LENGTH:
        text = text[:MAX_LOG_MESSAGE_LENGTH] + "...[truncated]"
    for pattern, replacement in _INLINE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


__all__ = [
    "MASK_PATTERN",
    "mask_value",
    "mask_card_number",
    "is_sensitive_key",
    "mask_sensitive_data",
    "mask_inline",
]
