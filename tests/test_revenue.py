from datetime import date, datetime
from decimal import Decimal

import pytest

from smb_ledger.models import (
    ExpenseKind,
    Ledger,
    Payment,
    Project,
    ProjectStatus,
    Sale,
    Transaction,
    TransactionType,
)
from smb_ledger.revenue import (
    GENERAL_INCOME,
    PROJECT_INCOME,
    SHOP_SALES,
    RecognitionPolicy,
    recognize_revenue,
)


def make_project(project_id, status, agreement, advance, payments=(), completed_at=None):
    return Project(
        id=project_id,
        company_id=1,
        name=f"Project {project_id}",
        status=status,
        agreement_amount=Decimal(agreement),
        advance_paid=Decimal(advance),
        created_at=datetime(2025, 1, 1),
        completed_at=completed_at,
        payments=tuple(
            Payment(id=i, project_id=project_id, amount=Decimal(a), payment_date=datetime(2025, 2, 1))
            for i, a in enumerate(payments, start=1)
        ),
    )


def make_ledger() -> Ledger:
    return Ledger(
        company_id=1,
        as_of=date(2025, 3, 31),
        projects=(
            make_project(1, ProjectStatus.COMPLETED, "10000", "2000", ["3000"],
                         completed_at=datetime(2025, 3, 1)),
            make_project(2, ProjectStatus.ACTIVE, "4000", "1000", ["500"]),
        ),
        sales=(
            Sale(
                id=1,
                company_id=1,
                subtotal=Decimal("100"),
                tax=Decimal("20"),
                total=Decimal("120"),
                paid_amount=Decimal("120"),
                payment_status="PAID",
                status="Completed",
                created_at=datetime(2025, 3, 2),
            ),
        ),
        transactions=(
            Transaction(1, 1, TransactionType.INCOME, Decimal("250"), datetime(2025, 3, 3),
                        category="Consulting"),
            Transaction(2, 1, TransactionType.INCOME, Decimal("9000"), datetime(2025, 3, 3),
                        category="Capital injection",
                        kind=ExpenseKind.CAPITAL_OR_WITHDRAWAL),
        ),
    )


def test_cash_revenue_counts_every_payment_and_sale_total() -> None:
    result = recognize_revenue(make_ledger(), RecognitionPolicy.CASH)

    breakdown = dict(result.breakdown)
    assert breakdown[PROJECT_INCOME] == Decimal("3500")
    assert breakdown[SHOP_SALES] == Decimal("120")
    assert breakdown[GENERAL_INCOME] == Decimal("250")
    assert result.total == Decimal("3870")
    assert result.unearned == 0


def test_accrual_revenue_recognizes_completed_projects_only() -> None:
    result = recognize_revenue(make_ledger(), RecognitionPolicy.ACCRUAL)

    breakdown = dict(result.breakdown)
    assert breakdown[PROJECT_INCOME] == Decimal("10000")
    assert breakdown[SHOP_SALES] == Decimal("100")
    assert result.total == Decimal("10350")
    # Everything received by the Active project is unearned.
    assert result.unearned == Decimal("1500")
    assert result.unearned_by_project == ((2, Decimal("1500")),)


def test_capital_injection_is_never_revenue() -> None:
    for policy in RecognitionPolicy:
        result = recognize_revenue(make_ledger(), policy)
        assert dict(result.breakdown)[GENERAL_INCOME] == Decimal("250")


def test_breakdown_sorted_descending_and_positive_only() -> None:
    ledger = Ledger(company_id=1, as_of=date(2025, 3, 31))
    assert recognize_revenue(ledger, "cash").breakdown == ()

    result = recognize_revenue(make_ledger(), RecognitionPolicy.ACCRUAL)
    amounts = [amount for _, amount in result.breakdown]
    assert amounts == sorted(amounts, reverse=True)


def test_policy_parse() -> None:
    assert RecognitionPolicy.parse("ACCRUAL") == RecognitionPolicy.ACCRUAL
    assert RecognitionPolicy.parse(RecognitionPolicy.CASH) == RecognitionPolicy.CASH
    with pytest.raises(ValueError):
        RecognitionPolicy.parse("mixed")
