from __future__ import annotations

import argparse
import asyncio
import csv
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from uuid import UUID

from discount_engine.core.logging import configure_logging
from discount_engine.db.session import SessionLocal
from discount_engine.discounts.batch import generate_batch_codes, parse_utc_datetime
from discount_engine.discounts.catalog import (
    CodeCatalog,
    normalize_catalog_code,
    validate_discount_payload,
    validate_limits,
)
from discount_engine.discounts.constants import DISCOUNT_TYPES
from discount_engine.discounts.errors import CatalogError


@dataclass(slots=True)
class BatchCode:
    raw_code: str
    code: str
    discount_code_id: UUID | None = None


def _load_raw_codes_from_csv(path: Path) -> list[str]:
    rows: list[str] = []
    with path.open("r", encoding="utf-8", newline="") as file:
        reader = csv.DictReader(file)
        if "code" in (reader.fieldnames or []):
            for row in reader:
                raw = (row.get("code") or "").strip()
                if raw:
                    rows.append(raw)
            return rows

    with path.open("r", encoding="utf-8", newline="") as file:
        for line in file:
            raw = line.strip()
            if raw:
                rows.append(raw)
    return rows


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Discount code batch generation/import tool")
    parser.add_argument("--plan-id", type=UUID, required=True)
    parser.add_argument("--discount-type", choices=DISCOUNT_TYPES, required=True)
    parser.add_argument("--discount-value")
    parser.add_argument("--duration-months", type=int, default=1)
    parser.add_argument("--max-uses", type=int)
    parser.add_argument("--max-uses-per-customer", type=int, default=1)
    parser.add_argument("--valid-from", help="ISO datetime")
    parser.add_argument("--valid-until", help="ISO datetime")
    parser.add_argument("--grace-period-minutes", type=int, default=30)
    parser.add_argument("--admin-notes")
    parser.add_argument("--created-by", required=True)
    parser.add_argument("--import-csv", type=Path)
    parser.add_argument("--count", type=int)
    parser.add_argument("--prefix", default="")
    parser.add_argument("--token-length", type=int, default=8)
    parser.add_argument("--output-csv", type=Path)
    parser.add_argument("--dry-run", action="store_true")
    return parser.parse_args(argv)


def _parse_discount_value(raw: str | None) -> Decimal | None:
    if raw is None:
        return None
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise ValueError(f"--discount-value is not a number: {raw}") from exc


def _validate_args(args: argparse.Namespace) -> None:
    if args.import_csv and args.count:
        raise ValueError("use either --import-csv or --count")
    if not args.import_csv and not args.count:
        raise ValueError("one of --import-csv or --count is required")

    validate_discount_payload(
        discount_type=args.discount_type,
        discount_value=_parse_discount_value(args.discount_value),
        discount_duration_months=args.duration_months,
    )
    validate_limits(
        max_uses=args.max_uses,
        max_uses_per_customer=args.max_uses_per_customer,
        valid_from=parse_utc_datetime(args.valid_from) if args.valid_from else None,
        valid_until=parse_utc_datetime(args.valid_until) if args.valid_until else None,
        grace_period_minutes=args.grace_period_minutes,
    )


def build_batch(args: argparse.Namespace) -> list[BatchCode]:
    if args.import_csv:
        raw_codes = _load_raw_codes_from_csv(args.import_csv)
    else:
        raw_codes = generate_batch_codes(
            count=args.count,
            token_length=args.token_length,
            prefix=args.prefix,
        )

    if not raw_codes:
        raise ValueError("no discount codes to process")

    seen: set[str] = set()
    batch: list[BatchCode] = []
    for raw_code in raw_codes:
        code = normalize_catalog_code(raw_code)
        if code in seen:
            raise ValueError(f"duplicate discount code in batch: {raw_code}")
        seen.add(code)
        batch.append(BatchCode(raw_code=raw_code, code=code))
    return batch


async def _insert_batch(args: argparse.Namespace, batch: list[BatchCode]) -> None:
    now_utc = datetime.now(timezone.utc)
    async with SessionLocal.begin() as session:
        for item in batch:
            discount_code = await CodeCatalog.create_code(
                session,
                code=item.code,
                plan_id=args.plan_id,
                discount_type=args.discount_type,
                discount_value=_parse_discount_value(args.discount_value),
                discount_duration_months=args.duration_months,
                max_uses=args.max_uses,
                max_uses_per_customer=args.max_uses_per_customer,
                valid_from=parse_utc_datetime(args.valid_from) if args.valid_from else None,
                valid_until=parse_utc_datetime(args.valid_until) if args.valid_until else None,
                grace_period_minutes=args.grace_period_minutes,
                admin_notes=args.admin_notes,
                created_by=args.created_by,
                now_utc=now_utc,
            )
            item.discount_code_id = discount_code.id


def _write_output(path: Path, batch: list[BatchCode]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as file:
        writer = csv.writer(file)
        writer.writerow(["raw_code", "code", "discount_code_id"])
        for item in batch:
            writer.writerow([item.raw_code, item.code, item.discount_code_id or ""])


async def _run(argv: list[str] | None = None) -> int:
    configure_logging()
    args = _parse_args(argv)
    try:
        _validate_args(args)
        batch = build_batch(args)
        if not args.dry_run:
            await _insert_batch(args, batch)
    except (CatalogError, ValueError) as exc:
        print(f"discount_batch_tool: rejected ({type(exc).__name__}: {exc})")  # noqa: T201
        return 2

    output_csv = args.output_csv or Path("reports/discount_batch_output.csv")
    _write_output(output_csv, batch)
    print(
        f"processed={len(batch)} inserted={0 if args.dry_run else len(batch)} output={output_csv}"  # noqa: T201
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    return asyncio.run(_run(argv))


if __name__ == "__main__":
    raise SystemExit(main())
