"""
CSV Import and Export

Two import formats are understood:

Generic CSV, header (case-insensitive, extra columns ignored):
    date, type, category, amount[, description, merchant]

WeChat Pay bill export. A free-text preamble precedes the table; the
table header starts with 交易时间 and has these columns:
    交易时间, 交易类型, 交易对方, 商品, 收/支, 金额(元), 支付方式,
    当前状态, 交易单号, 商户单号, 备注
收/支 is 收入 (income), 支出 (expense) or "/" for neutral movements
such as transfers to change, which are skipped.

Importers only build drafts. Required-field checks happen when the
drafts are inserted, so an incomplete row fails the whole batch there.
"""

import csv
import io
import json
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from pydantic import ValidationError

from fintrack.models.transaction import (
    ImportSource,
    Transaction,
    TransactionDraft,
    TransactionType,
)


EXPORT_COLUMNS = [
    "id",
    "date",
    "type",
    "category",
    "amount",
    "description",
    "merchant",
    "imported_from",
]

WECHAT_HEADER_MARKER = "交易时间"
WECHAT_DIRECTIONS = {
    "收入": TransactionType.INCOME,
    "支出": TransactionType.EXPENSE,
}


class CsvImportError(ValueError):
    """A row could not be turned into a transaction draft."""

    def __init__(self, line: int, message: str):
        self.line = line
        super().__init__(f"Line {line}: {message}")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = " ".join(value.split())
    return cleaned or None


def _parse_date(value: Optional[str]) -> Optional[str]:
    """Normalize a date or date-time cell to YYYY-MM-DD."""
    s = _clean(value)
    if s is None:
        return None
    for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M", "%Y-%m-%d", "%Y/%m/%d %H:%M", "%Y/%m/%d", "%m/%d/%Y"):
        try:
            return datetime.strptime(s, fmt).date().isoformat()
        except ValueError:
            continue
    return None


def _wechat_cell(value: Optional[str]) -> Optional[str]:
    # WeChat writes "/" for an empty cell
    s = _clean(value)
    return None if s == "/" else s


def _parse_amount(value: Optional[str]) -> Optional[str]:
    s = _clean(value)
    if s is None:
        return None
    return s.lstrip("¥￥$").replace(",", "").strip() or None


def _build_draft(line: int, **fields) -> TransactionDraft:
    try:
        return TransactionDraft(**fields)
    except ValidationError as e:
        raise CsvImportError(line, "; ".join(err["msg"] for err in e.errors()))


def parse_generic_csv(text: str) -> list[TransactionDraft]:
    """
    Parse a generic transactions CSV.

    Raises:
        CsvImportError: If a row has an unreadable date, type or amount
    """
    reader = csv.DictReader(io.StringIO(text.lstrip("﻿")))
    drafts = []
    # Line 1 is the header
    for line, row in enumerate(reader, start=2):
        row = {(key or "").strip().lower(): value for key, value in row.items()}
        if not any(_clean(v) for v in row.values() if isinstance(v, str)):
            continue

        date_raw = _clean(row.get("date"))
        date_value = _parse_date(date_raw)
        if date_raw and date_value is None:
            raise CsvImportError(line, f"Unrecognized date: {date_raw}")

        type_raw = _clean(row.get("type"))
        drafts.append(_build_draft(
            line,
            date=date_value,
            type=type_raw.lower() if type_raw else None,
            category=_clean(row.get("category")),
            amount=_parse_amount(row.get("amount")),
            description=_clean(row.get("description")),
            merchant=_clean(row.get("merchant")),
            imported_from=ImportSource.FILE,
        ))
    return drafts


def parse_wechat_csv(text: str) -> list[TransactionDraft]:
    """
    Parse a WeChat Pay bill export.

    Raises:
        CsvImportError: If the table header is missing or a row is unreadable
    """
    lines = text.lstrip("﻿").splitlines()
    header_index = next(
        (i for i, line in enumerate(lines) if line.lstrip().startswith(WECHAT_HEADER_MARKER)),
        None,
    )
    if header_index is None:
        raise CsvImportError(1, "Not a WeChat Pay export: table header not found")

    reader = csv.DictReader(io.StringIO("\n".join(lines[header_index:])))
    drafts = []
    for offset, row in enumerate(reader, start=2):
        line = header_index + offset
        row = {(key or "").strip(): value for key, value in row.items()}

        direction = WECHAT_DIRECTIONS.get(_clean(row.get("收/支")) or "")
        if direction is None:
            continue

        date_raw = _clean(row.get("交易时间"))
        date_value = _parse_date(date_raw)
        if date_value is None:
            raise CsvImportError(line, f"Unrecognized date: {date_raw}")

        drafts.append(_build_draft(
            line,
            date=date_value,
            type=direction,
            category=_wechat_cell(row.get("交易类型")),
            amount=_parse_amount(row.get("金额(元)")),
            description=_wechat_cell(row.get("商品")),
            merchant=_wechat_cell(row.get("交易对方")),
            imported_from=ImportSource.WECHAT,
        ))
    return drafts


def export_csv(transactions: Iterable[Transaction]) -> str:
    """Serialize transactions to CSV, one row each."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    for txn in transactions:
        writer.writerow({
            "id": str(txn.id),
            "date": txn.date.isoformat(),
            "type": txn.type.value,
            "category": txn.category,
            "amount": repr(txn.amount),
            "description": txn.description or "",
            "merchant": txn.merchant or "",
            "imported_from": txn.imported_from.value if txn.imported_from else "",
        })
    return buffer.getvalue()


def export_json(transactions: Iterable[Transaction]) -> str:
    """Serialize transactions to a JSON array."""
    return json.dumps(
        [txn.to_wire() for txn in transactions],
        ensure_ascii=False,
        indent=2,
    )
