from __future__ import annotations

import secrets
import string
from datetime import datetime, timezone

from discount_engine.discounts.constants import MAX_CODE_LENGTH
from discount_engine.services.discount_codes import is_valid_code_format, normalize_discount_code

# 0/O and 1/I are left out so printed codes survive being retyped.
UNAMBIGUOUS_ALPHABET = "".join(
    char for char in string.ascii_uppercase + string.digits if char not in "01IO"
)


def as_utc(value: datetime) -> datetime:
    """Offset-less datetimes are taken as UTC; aware ones are converted to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_utc_datetime(value: str) -> datetime:
    return as_utc(datetime.fromisoformat(value.strip()))


def generate_batch_codes(
    *,
    count: int,
    token_length: int = 8,
    prefix: str = "",
    taken_codes: set[str] | None = None,
) -> list[str]:
    """Random catalog-ready codes sharing one prefix.

    The prefix goes through the same normalisation as checkout input, and
    every result already matches the stored code format, so the batch can be
    inserted without a second normalising pass.
    """
    if count <= 0:
        raise ValueError("count must be positive")
    if token_length <= 0:
        raise ValueError("token_length must be positive")

    normalized_prefix = normalize_discount_code(prefix)
    if normalized_prefix and not is_valid_code_format(normalized_prefix):
        raise ValueError(f"prefix must be alphanumeric: {prefix}")
    if len(normalized_prefix) + token_length > MAX_CODE_LENGTH:
        raise ValueError(f"prefix + token must fit in {MAX_CODE_LENGTH} characters")

    budget = max(100, count * 50)
    taken = {normalize_discount_code(code) for code in taken_codes or ()}
    codes: list[str] = []
    for _ in range(budget):
        if len(codes) == count:
            break
        token = "".join(secrets.choice(UNAMBIGUOUS_ALPHABET) for _ in range(token_length))
        candidate = normalized_prefix + token
        if candidate in taken or not is_valid_code_format(candidate):
            continue
        taken.add(candidate)
        codes.append(candidate)

    if len(codes) < count:
        raise ValueError(
            f"only {len(codes)} of {count} unique codes fit a {token_length}-character token"
        )
    return codes
