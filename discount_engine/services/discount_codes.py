from __future__ import annotations

import re

_DISCOUNT_NORMALIZE_PATTERN = re.compile(r"[\s-]+")
_DISCOUNT_CODE_FORMAT = re.compile(r"^[A-Z0-9]{1,32}$")


def normalize_discount_code(raw_code: str) -> str:
    normalized = raw_code.strip().upper()
    return _DISCOUNT_NORMALIZE_PATTERN.sub("", normalized)


def is_valid_code_format(normalized_code: str) -> bool:
    return _DISCOUNT_CODE_FORMAT.fullmatch(normalized_code) is not None


def normalize_holder_identity(raw_identity: str) -> str:
    return raw_identity.strip().lower()

