"""Tests for CSV import and CSV / JSON export."""

import csv
import io
import json
from datetime import date

import pytest

from fintrack.ingest import (
    CsvImportError,
    export_csv,
    export_json,
    parse_generic_csv,
    parse_wechat_csv,
)
from fintrack.models import ImportSource, TransactionType


WECHAT_EXPORT = """微信支付账单明细,,,,,,,,,,
微信昵称：[someone],,,,,,,,,,
起始时间：[2024-03-01 00:00:00] 终止时间：[2024-03-31 23:59:59],,,,,,,,,,
导出类型：[全部],,,,,,,,,,
,,,,,,,,,,
----------------------微信支付账单明细列表--------------------,,,,,,,,,,
交易时间,交易类型,交易对方,商品,收/支,金额(元),支付方式,当前状态,交易单号,商户单号,备注
2024-03-05 12:30:01,商户消费,Corner Cafe,Latte,支出,¥28.00,零钱,支付成功,4200001,10001,/
2024-03-06 09:00:00,转账,Alice,/,收入,"¥1,200.50",/,已收钱,4200002,/,/
2024-03-07 18:20:44,零钱提现,财付通,/,/,¥100.00,零钱,提现已到账,4200003,/,/
"""


class TestGenericCsv:
    """Tests for the generic transactions CSV."""

    def test_parses_rows(self):
        drafts = parse_generic_csv(
            "date,type,category,amount,description,merchant\n"
            "2024-03-01,expense,Food,12.50,Lunch,Cafe\n"
            "2024-03-02,Income,Salary,3000,,\n"
        )
        assert len(drafts) == 2
        assert drafts[0].date == date(2024, 3, 1)
        assert drafts[0].type == TransactionType.EXPENSE
        assert drafts[0].amount == 12.5
        assert drafts[0].merchant == "Cafe"
        assert drafts[1].type == TransactionType.INCOME
        assert drafts[1].description is None
        assert all(d.imported_from == ImportSource.FILE for d in drafts)

    def test_optional_columns_may_be_absent(self):
        drafts = parse_generic_csv('Date,Type,Category,Amount\n2024/03/01,expense,Food,"$1,000"\n')
        assert drafts[0].amount == 1000.0
        assert drafts[0].date == date(2024, 3, 1)

    def test_blank_lines_are_skipped(self):
        drafts = parse_generic_csv("date,type,category,amount\n,,,\n2024-03-01,expense,Food,1\n")
        assert len(drafts) == 1

    def test_missing_required_value_is_left_for_the_store(self):
        drafts = parse_generic_csv("date,type,category,amount\n2024-03-01,expense,,5\n")
        assert drafts[0].category is None

    def test_bad_date_reports_line(self):
        with pytest.raises(CsvImportError) as exc_info:
            parse_generic_csv("date,type,category,amount\n2024-03-01,expense,Food,1\nyesterday,expense,Food,1\n")
        assert exc_info.value.line == 3

    @pytest.mark.parametrize("row", [
        "2024-03-01,transfer,Food,1",
        "2024-03-01,expense,Food,lots",
        "2024-03-01,expense,Food,-5",
    ])
    def test_bad_values_raise(self, row):
        with pytest.raises(CsvImportError):
            parse_generic_csv(f"date,type,category,amount\n{row}\n")


class TestWeChatCsv:
    """Tests for the WeChat Pay bill export."""

    def test_parses_income_and_expense(self):
        drafts = parse_wechat_csv(WECHAT_EXPORT)

        assert len(drafts) == 2
        expense, income = drafts
        assert expense.type == TransactionType.EXPENSE
        assert expense.amount == 28.0
        assert expense.merchant == "Corner Cafe"
        assert expense.description == "Latte"
        assert expense.category == "商户消费"
        assert expense.date == date(2024, 3, 5)
        assert income.type == TransactionType.INCOME
        assert income.amount == 1200.5
        assert income.description is None
        assert all(d.imported_from == ImportSource.WECHAT for d in drafts)

    def test_neutral_rows_are_skipped(self):
        drafts = parse_wechat_csv(WECHAT_EXPORT)
        assert all(d.merchant != "财付通" for d in drafts)

    def test_missing_header_raises(self):
        with pytest.raises(CsvImportError):
            parse_wechat_csv("date,type,category,amount\n2024-03-01,expense,Food,1\n")


class TestExport:
    """Tests for CSV and JSON export."""

    @pytest.fixture
    def transactions(self, txn):
        return [
            txn("expense", 12.5, "Food", merchant="Cafe", imported_from=ImportSource.MANUAL),
            txn("income", 3000, "Salary"),
        ]

    def test_export_csv(self, transactions):
        rows = list(csv.DictReader(io.StringIO(export_csv(transactions))))
        assert len(rows) == 2
        assert rows[0]["id"] == str(transactions[0].id)
        assert rows[0]["amount"] == "12.5"
        assert rows[0]["merchant"] == "Cafe"
        assert rows[1]["imported_from"] == ""

    def test_export_csv_reimports(self, transactions):
        drafts = parse_generic_csv(export_csv(transactions))
        assert [(d.type, d.category, d.amount) for d in drafts] == [
            (t.type, t.category, t.amount) for t in transactions
        ]

    def test_export_json(self, transactions):
        data = json.loads(export_json(transactions))
        assert data[0]["importedFrom"] == "manual"
        assert data[1]["amount"] == 3000

    def test_export_empty(self):
        assert json.loads(export_json([])) == []
        assert export_csv([]).strip() == ",".join([
            "id", "date", "type", "category", "amount", "description", "merchant", "imported_from",
        ])
