from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from decimal import Decimal

import smb_ledger.periods as periods
from smb_ledger.engine import (
    COGS_LABEL,
    DEPRECIATION_LABEL,
    build_balance_sheet,
    build_financial_summary,
    build_profit_and_loss,
    check_balance,
    cost_of_goods_sold,
)
from smb_ledger.models import (
    Account,
    Expense,
    ExpenseKind,
    FixedAsset,
    Ledger,
    PaymentStatus,
    Product,
    Project,
    ProjectStatus,
    Sale,
    SaleItem,
    Transaction,
    TransactionType,
)
from smb_ledger.revenue import RecognitionPolicy

AS_OF = date(2025, 3, 31)


def make_expense(expense_id, category, amount, kind, *, status=PaymentStatus.PAID, project_id=None):
    return Expense(
        id=expense_id,
        company_id=1,
        category=category,
        amount=Decimal(amount),
        payment_status=status,
        expense_date=datetime(2025, 2, 1),
        kind=kind,
        project_id=project_id,
    )


def make_project(project_id, status, agreement, advance, completed_at=None) -> Project:
    return Project(
        id=project_id,
        company_id=1,
        name=f"Project {project_id}",
        status=status,
        agreement_amount=Decimal(agreement),
        advance_paid=Decimal(advance),
        created_at=datetime(2025, 1, 2),
        completed_at=completed_at,
    )


def make_sale(sale_id, subtotal, tax, items=(), status="Completed") -> Sale:
    subtotal, tax = Decimal(subtotal), Decimal(tax)
    return Sale(
        id=sale_id,
        company_id=1,
        subtotal=subtotal,
        tax=tax,
        total=subtotal + tax,
        paid_amount=subtotal + tax,
        payment_status="PAID",
        status=status,
        created_at=datetime(2025, 3, 1),
        items=tuple(items),
    )


def test_pnl_identities_hold() -> None:
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        transactions=(
            Transaction(1, 1, TransactionType.INCOME, Decimal("2000"), datetime(2025, 3, 1),
                        category="Consulting"),
        ),
        expenses=(
            make_expense(1, "Rent", "300", ExpenseKind.OPERATING_EXPENSE),
            make_expense(2, "Fuel", "120", ExpenseKind.OPERATING_EXPENSE),
        ),
    )

    for policy in RecognitionPolicy:
        pnl = build_profit_and_loss(ledger, policy)
        assert pnl.gross_profit == pnl.revenue - pnl.direct_costs
        assert pnl.operating_profit == pnl.gross_profit - pnl.operating_expenses
        assert pnl.net_profit == pnl.operating_profit - pnl.other_expenses
        assert pnl.other_expenses == 0
        assert pnl.net_profit == Decimal("1580")
        assert pnl.operating_expense_breakdown == (
            ("Rent", Decimal("300")),
            ("Fuel", Decimal("120")),
        )


def test_unpaid_material_without_project_is_not_a_direct_cost() -> None:
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        expenses=(
            make_expense(1, "Material", "500", ExpenseKind.OPERATING_EXPENSE,
                         status=PaymentStatus.UNPAID),
        ),
    )
    pnl = build_profit_and_loss(ledger, RecognitionPolicy.ACCRUAL)
    assert pnl.direct_costs == 0
    assert pnl.operating_expenses == Decimal("500")

    sheet = build_balance_sheet(ledger, RecognitionPolicy.ACCRUAL)
    assert sheet.liabilities.get("Accounts Payable").value == Decimal("500")


def test_direct_costs_of_active_projects_are_work_in_progress() -> None:
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        projects=(
            make_project(1, ProjectStatus.ACTIVE, "5000", "0"),
            make_project(2, ProjectStatus.COMPLETED, "3000", "3000",
                         completed_at=datetime(2025, 3, 10)),
        ),
        expenses=(
            make_expense(1, "Material", "800", ExpenseKind.DIRECT_COST, project_id=1),
            make_expense(2, "Material", "600", ExpenseKind.DIRECT_COST, project_id=2),
        ),
    )

    accrual = build_profit_and_loss(ledger, RecognitionPolicy.ACCRUAL)
    assert accrual.direct_costs == Decimal("600")
    assert dict(accrual.direct_cost_breakdown) == {"Project 2": Decimal("600")}

    cash = build_profit_and_loss(ledger, RecognitionPolicy.CASH)
    assert cash.direct_costs == Decimal("1400")

    sheet = build_balance_sheet(ledger, RecognitionPolicy.ACCRUAL)
    wip = sheet.assets.get("Work in Progress")
    assert wip.value == Decimal("800")
    assert [(c.drill_type, c.drill_id) for c in wip.breakdown] == [("project", 1)]


def test_cogs_only_for_completed_sales_under_accrual(caplog) -> None:
    chair = Product(id=1, name="Chair", cost_price=Decimal("40"))
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        sales=(
            make_sale(1, "150", "0", [SaleItem(Decimal("2"), 1, chair)]),
            make_sale(2, "75", "0", [SaleItem(Decimal("1"), 1, chair)], status="Refunded"),
            make_sale(3, "50", "0", [SaleItem(Decimal("1"), 99, None)]),
        ),
    )

    with caplog.at_level("WARNING"):
        assert cost_of_goods_sold(ledger) == Decimal("80")
    assert "without product" in caplog.text

    accrual = build_profit_and_loss(ledger, RecognitionPolicy.ACCRUAL)
    assert dict(accrual.direct_cost_breakdown)[COGS_LABEL] == Decimal("80")

    cash = build_profit_and_loss(ledger, RecognitionPolicy.CASH)
    assert cash.direct_costs == 0


def test_expense_of_missing_project_contributes_nothing(caplog) -> None:
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        expenses=(make_expense(1, "Material", "300", ExpenseKind.DIRECT_COST, project_id=42),),
    )
    with caplog.at_level("WARNING"):
        pnl = build_profit_and_loss(ledger, RecognitionPolicy.ACCRUAL)
    assert pnl.direct_costs == 0
    assert "missing project 42" in caplog.text


def test_depreciation_is_an_operating_expense_and_reduces_fixed_assets() -> None:
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        accounts=(Account(1, 1, "Main bank", "Bank", Decimal("8000")),),
        fixed_assets=(FixedAsset(1, 1, "Van", Decimal("2000"), date(2024, 5, 1)),),
        transactions=(
            Transaction(1, 1, TransactionType.INCOME, Decimal("10000"), datetime(2024, 1, 1),
                        category="Capital injection", kind=ExpenseKind.CAPITAL_OR_WITHDRAWAL),
        ),
    )

    pnl = build_profit_and_loss(ledger, RecognitionPolicy.ACCRUAL)
    assert dict(pnl.operating_expense_breakdown)[DEPRECIATION_LABEL] == Decimal("300")

    sheet = build_balance_sheet(ledger, RecognitionPolicy.ACCRUAL)
    assert sheet.assets.get("Fixed Assets").value == Decimal("1700")
    assert sheet.equity.get("Capital").value == Decimal("10000")
    assert sheet.check.is_balanced


def test_drawings_reduce_equity() -> None:
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        accounts=(
            Account(1, 1, "Till", "Cash", Decimal("700")),
            Account(2, 1, "Owner", "Owner Equity", Decimal("1000")),
        ),
        expenses=(make_expense(1, "Owner drawing", "300", ExpenseKind.CAPITAL_OR_WITHDRAWAL),),
    )
    sheet = build_balance_sheet(ledger, RecognitionPolicy.CASH)

    assert sheet.equity.get("Drawings").value == Decimal("-300")
    assert sheet.performance.net_profit == 0
    assert sheet.total_equity == Decimal("700")
    assert sheet.check.is_balanced


def test_balance_mismatch_is_a_diagnostic_not_an_error(caplog) -> None:
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        accounts=(Account(1, 1, "Main bank", "Bank", Decimal("500")),),
    )
    with caplog.at_level("WARNING"):
        sheet = build_balance_sheet(ledger, RecognitionPolicy.ACCRUAL)

    assert sheet.diagnostics.balance.is_balanced is False
    assert sheet.diagnostics.balance.difference == Decimal("500")
    assert any("mismatch" in w for w in sheet.diagnostics.warnings)
    assert "mismatch" in caplog.text


def test_check_balance_tolerance() -> None:
    assert check_balance(Decimal("100.50"), Decimal("0"), Decimal("100")).is_balanced
    assert not check_balance(Decimal("101"), Decimal("0"), Decimal("100")).is_balanced
    assert not check_balance(
        Decimal("100.01"), Decimal("0"), Decimal("100"), Decimal("0.01")
    ).is_balanced


def test_historical_sheet_flags_current_account_balances(monkeypatch) -> None:
    monkeypatch.setattr(periods, "_today", lambda: date(2025, 6, 30))
    ledger = Ledger(company_id=1, as_of=AS_OF)

    sheet = build_balance_sheet(ledger, RecognitionPolicy.ACCRUAL)
    assert sheet.diagnostics.account_balances_are_current is True

    today = build_balance_sheet(Ledger(company_id=1, as_of=date(2025, 6, 30)), "accrual")
    assert today.diagnostics.account_balances_are_current is False


def test_executor_fan_out_gives_the_same_sheet() -> None:
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        accounts=(Account(1, 1, "Main bank", "Bank", Decimal("1200")),),
        projects=(make_project(1, ProjectStatus.ACTIVE, "5000", "1200"),),
        expenses=(make_expense(1, "Labour", "400", ExpenseKind.DIRECT_COST, project_id=1),),
    )
    inline = build_balance_sheet(ledger, RecognitionPolicy.ACCRUAL)
    with ThreadPoolExecutor(max_workers=4) as pool:
        fanned = build_balance_sheet(ledger, RecognitionPolicy.ACCRUAL, executor=pool)

    assert fanned.assets == inline.assets
    assert fanned.liabilities == inline.liabilities
    assert fanned.equity == inline.equity


def test_summary_uses_one_policy_for_both_parts() -> None:
    ledger = Ledger(
        company_id=1,
        as_of=AS_OF,
        projects=(make_project(1, ProjectStatus.ACTIVE, "5000", "1000"),),
    )
    summary = build_financial_summary(ledger, RecognitionPolicy.CASH)

    assert summary.policy == RecognitionPolicy.CASH
    assert summary.position.policy == RecognitionPolicy.CASH
    assert summary.performance == summary.position.performance
    assert summary.position.liabilities.get("Unearned Revenue").value == 0


def test_empty_lines_keep_two_fraction_digits() -> None:
    ledger = Ledger(company_id=1, as_of=AS_OF)

    for policy in RecognitionPolicy:
        sheet = build_balance_sheet(ledger, policy)
        for section in (sheet.assets, sheet.liabilities, sheet.equity):
            for item in section.items:
                assert item.value.as_tuple().exponent <= -2, item.label
        assert sheet.check.difference.as_tuple().exponent <= -2

        pnl = build_profit_and_loss(ledger, policy)
        assert pnl.net_profit.as_tuple().exponent <= -2
