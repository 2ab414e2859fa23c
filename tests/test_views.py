from datetime import date, datetime
from decimal import Decimal

from smb_ledger.engine import build_balance_sheet, build_financial_summary, build_profit_and_loss
from smb_ledger.models import (
    Account,
    Expense,
    ExpenseKind,
    Ledger,
    PaymentStatus,
    Transaction,
    TransactionType,
)
from smb_ledger.receivables import CUSTOMER, CounterpartyBalance
from smb_ledger.revenue import RecognitionPolicy
from smb_ledger.views import (
    COLUMNS,
    balance_sheet_to_dataframe,
    counterparty_balances_to_dataframe,
    profit_and_loss_to_dataframe,
    summary_to_dataframe,
)


def _is_step10(seq) -> bool:
    return seq[0] == 10 and all(b - a == 10 for a, b in zip(seq, seq[1:]))


def sample_ledger() -> Ledger:
    return Ledger(
        company_id=1,
        as_of=date(2025, 3, 31),
        accounts=(Account(1, 1, "Main bank", "Bank", Decimal("1879.875")),),
        transactions=(
            Transaction(1, 1, TransactionType.INCOME, Decimal("2000"), datetime(2025, 3, 1),
                        category="Consulting"),
        ),
        expenses=(
            Expense(
                id=1,
                company_id=1,
                category="Fuel",
                amount=Decimal("120.125"),
                payment_status=PaymentStatus.PAID,
                expense_date=datetime(2025, 3, 2),
                kind=ExpenseKind.OPERATING_EXPENSE,
            ),
        ),
    )


def test_profit_and_loss_view_order_and_rounding() -> None:
    pnl = build_profit_and_loss(sample_ledger(), RecognitionPolicy.CASH)
    df = profit_and_loss_to_dataframe(pnl)

    assert list(df.columns) == COLUMNS
    assert _is_step10(df["display_order"].tolist())

    totals = df[df["level"] < 2]["label"].tolist()
    assert totals == [
        "Revenue",
        "Direct Costs",
        "Gross Profit",
        "Operating Expenses",
        "Operating Profit",
        "Other Expenses",
        "Net Profit",
    ]
    values = dict(zip(df["label"], df["value"]))
    # Banker's rounding: 120.125 -> 120.12
    assert values["Fuel"] == Decimal("120.12")
    assert values["Net Profit"] == Decimal("1879.88")


def test_profit_and_loss_view_without_breakdowns() -> None:
    pnl = build_profit_and_loss(sample_ledger(), RecognitionPolicy.CASH)
    df = profit_and_loss_to_dataframe(pnl, detailed=False)

    assert df["level"].max() <= 1
    assert "Fuel" not in df["label"].tolist()


def test_balance_sheet_view_ends_with_check_rows() -> None:
    sheet = build_balance_sheet(sample_ledger(), RecognitionPolicy.CASH)
    df = balance_sheet_to_dataframe(sheet, decimals=0)

    assert _is_step10(df["display_order"].tolist())
    assert df["section"].iloc[-1] == "Check"
    assert df["label"].tolist()[-2:] == ["Total Liabilities + Equity", "Difference"]
    assert df["value"].iloc[-1] == Decimal("0")

    cash = df[df["label"] == "Cash & Bank"].iloc[0]
    assert cash["level"] == 1
    assert cash["value"] == Decimal("1880")


def test_summary_view_has_performance_and_position() -> None:
    summary = build_financial_summary(sample_ledger(), RecognitionPolicy.CASH)
    df = summary_to_dataframe(summary)

    assert df["section"].unique().tolist() == ["Performance", "Position"]
    values = dict(zip(df["label"], df["value"]))
    assert values["Assets"] == values["Liabilities"] + values["Equity"]


def test_counterparty_balances_view() -> None:
    empty = counterparty_balances_to_dataframe([])
    assert empty.empty
    assert list(empty.columns) == ["drill_type", "drill_id", "taken", "repaid", "net", "balance"]

    df = counterparty_balances_to_dataframe(
        [CounterpartyBalance(CUSTOMER, 7, Decimal("100"), Decimal("150"))]
    )
    row = df.iloc[0]
    assert row["net"] == Decimal("-50.00")
    assert row["balance"] == Decimal("0.00")
