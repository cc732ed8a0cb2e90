from __future__ import annotations

from sqlalchemy.exc import DBAPIError

LOCK_NOT_AVAILABLE_SQLSTATE = "55P03"


def _extract_sqlstate(error: BaseException | None) -> str | None:
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        for attr in ("sqlstate", "pgcode"):
            value = getattr(error, attr, None)
            if isinstance(value, str) and value:
                return value
        error = error.__cause__ or getattr(error, "orig", None)
    return None


def is_lock_not_available(exc: BaseException) -> bool:
    """True when the database refused a NOWAIT row lock held by another transaction."""
    if not isinstance(exc, DBAPIError):
        return False
    return _extract_sqlstate(exc.orig) == LOCK_NOT_AVAILABLE_SQLSTATE


def violated_constraint(exc: BaseException) -> str | None:
    """Name of the constraint behind an integrity error, when the driver reports it."""
    error: BaseException | None = getattr(exc, "orig", None) or exc
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        name = getattr(error, "constraint_name", None)
        if isinstance(name, str) and name:
            return name
        error = error.__cause__
    return None
