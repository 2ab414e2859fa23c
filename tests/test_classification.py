from datetime import date, datetime
from decimal import Decimal

from smb_ledger.classification import (
    classify_expense,
    classify_transaction,
    cost_items,
    infer_expense_kind,
    infer_transaction_kind,
)
from smb_ledger.models import (
    Expense,
    ExpenseKind,
    Ledger,
    PaymentStatus,
    Transaction,
    TransactionType,
)


def make_expense(
    expense_id: int,
    category: str,
    amount: str,
    *,
    kind=None,
    status=PaymentStatus.PAID,
    project_id=None,
    customer_id=None,
) -> Expense:
    return Expense(
        id=expense_id,
        company_id=1,
        category=category,
        amount=Decimal(amount),
        payment_status=status,
        expense_date=datetime(2025, 1, 10),
        kind=kind,
        project_id=project_id,
        customer_id=customer_id,
    )


def make_tx(tx_id: int, tx_type: TransactionType, amount: str, **kwargs) -> Transaction:
    return Transaction(
        id=tx_id,
        company_id=1,
        type=tx_type,
        amount=Decimal(amount),
        transaction_date=datetime(2025, 1, 10),
        **kwargs,
    )


def test_infer_expense_kind_precedence() -> None:
    assert infer_expense_kind("Material", project_id=3) == ExpenseKind.DIRECT_COST
    assert infer_expense_kind("Material") == ExpenseKind.OPERATING_EXPENSE
    assert infer_expense_kind("Bank Loan repayment") == ExpenseKind.DEBT_OR_LOAN
    assert infer_expense_kind("Owner Drawing") == ExpenseKind.CAPITAL_OR_WITHDRAWAL
    assert infer_expense_kind("Shipping", customer_id=8) == ExpenseKind.CUSTOMER_RECEIVABLE
    # Project link wins over customer link.
    assert (
        infer_expense_kind("Labour", project_id=3, customer_id=8)
        == ExpenseKind.DIRECT_COST
    )
    # Keywords are matched on the sub-category too.
    assert infer_expense_kind("Finance", "Loan") == ExpenseKind.DEBT_OR_LOAN


def test_infer_expense_kind_debt_keyword_beats_project_link() -> None:
    assert infer_expense_kind("Debt", project_id=3) == ExpenseKind.DEBT_OR_LOAN


def test_classify_expense_prefers_stored_kind() -> None:
    stored = make_expense(1, "Loan", "100", kind=ExpenseKind.OPERATING_EXPENSE)
    assert classify_expense(stored) == ExpenseKind.OPERATING_EXPENSE


def test_classify_expense_legacy_row_is_inferred_with_warning(caplog) -> None:
    legacy = make_expense(2, "Material", "100", project_id=4)
    with caplog.at_level("WARNING"):
        assert classify_expense(legacy) == ExpenseKind.DIRECT_COST
    assert "no stored kind" in caplog.text


def test_infer_transaction_kind() -> None:
    assert (
        infer_transaction_kind(TransactionType.DEBT_TAKEN, None)
        == ExpenseKind.DEBT_OR_LOAN
    )
    assert (
        infer_transaction_kind(TransactionType.INCOME, "Capital injection")
        == ExpenseKind.CAPITAL_OR_WITHDRAWAL
    )
    assert infer_transaction_kind(TransactionType.INCOME, "Consulting") is None
    assert (
        infer_transaction_kind(TransactionType.EXPENSE, "Rent")
        == ExpenseKind.OPERATING_EXPENSE
    )


def test_classify_transaction_skips_expense_backed_movements() -> None:
    backed = make_tx(1, TransactionType.EXPENSE, "-50", category="Rent", expense_id=9)
    assert classify_transaction(backed) is None

    standalone = make_tx(
        2, TransactionType.EXPENSE, "-50", category="Rent", kind=ExpenseKind.OPERATING_EXPENSE
    )
    assert classify_transaction(standalone) == ExpenseKind.OPERATING_EXPENSE

    income = make_tx(3, TransactionType.INCOME, "50", category="Consulting")
    assert classify_transaction(income) is None


def test_cost_items_merge_expenses_and_standalone_transactions() -> None:
    ledger = Ledger(
        company_id=1,
        as_of=date(2025, 1, 31),
        expenses=(
            make_expense(1, "Material", "500", kind=ExpenseKind.OPERATING_EXPENSE,
                         status=PaymentStatus.UNPAID),
            make_expense(2, "  ", "20", kind=ExpenseKind.OPERATING_EXPENSE),
        ),
        transactions=(
            make_tx(10, TransactionType.EXPENSE, "-75", category="Fuel",
                    kind=ExpenseKind.OPERATING_EXPENSE),
            make_tx(11, TransactionType.EXPENSE, "-40", category="Rent", expense_id=2),
            make_tx(12, TransactionType.INCOME, "1000", category="Consulting"),
        ),
    )

    items = cost_items(ledger)

    assert [(i.source, i.source_id) for i in items] == [
        ("expense", 1),
        ("expense", 2),
        ("transaction", 10),
    ]
    assert items[0].unpaid is True
    assert items[1].category == "General"
    # Expense transactions are negative; their cost is the magnitude.
    assert items[2].amount == Decimal("75")
