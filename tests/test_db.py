from datetime import date, datetime
from decimal import Decimal

import pytest

from smb_ledger.db import (
    DatabaseConfig,
    NewSaleItem,
    company_exists,
    count_rows,
    create_company,
    get_account_balance,
    init_database,
    insert_account,
    insert_expense,
    insert_fixed_asset,
    insert_product,
    insert_project,
    insert_sale,
    list_journal_lines,
    load_ledger,
    post_journal_lines,
    record_payment,
    record_transaction,
    set_account_active,
)
from smb_ledger.errors import InactiveAccountError, MissingAccountError
from smb_ledger.journal import JournalStatus, make_entry, validate_journal_entry
from smb_ledger.models import ExpenseKind, PaymentStatus, ProjectStatus, TransactionType


def make_tmp_db_cfg(tmp_path) -> DatabaseConfig:
    """Helper to build a DatabaseConfig pointing to a temporary SQLite file."""
    db_path = tmp_path / "test_db.sqlite"
    return DatabaseConfig(engine="sqlite", path=db_path)


def make_company(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)
    init_database(cfg)
    company_id = create_company(cfg, "Acme Builders")
    bank_id = insert_account(cfg, company_id, "Main bank", "Bank")
    return cfg, company_id, bank_id


def test_init_database_creates_file_and_is_idempotent(tmp_path):
    cfg = make_tmp_db_cfg(tmp_path)

    assert not cfg.path.exists()
    init_database(cfg)
    init_database(cfg)
    assert cfg.path.exists()
    assert company_exists(cfg, 1) is False


def test_unsupported_engine_is_rejected(tmp_path):
    cfg = DatabaseConfig(engine="postgres", path=tmp_path / "x.db")
    with pytest.raises(ValueError):
        init_database(cfg)


def test_record_transaction_normalizes_sign_and_moves_cash(tmp_path):
    cfg, company_id, bank_id = make_company(tmp_path)

    record_transaction(cfg, company_id, "INCOME", "-1000", date(2025, 1, 5), account_id=bank_id,
                       category="Consulting")
    record_transaction(cfg, company_id, TransactionType.EXPENSE, "200", date(2025, 1, 6),
                       account_id=bank_id, category="Fuel")

    assert get_account_balance(cfg, company_id, bank_id) == Decimal("800.00")

    ledger = load_ledger(cfg, company_id, date(2025, 1, 31))
    amounts = {t.category: t.amount for t in ledger.transactions}
    assert amounts == {"Consulting": Decimal("1000.00"), "Fuel": Decimal("-200.00")}
    fuel = next(t for t in ledger.transactions if t.category == "Fuel")
    assert fuel.kind == ExpenseKind.OPERATING_EXPENSE


def test_debt_repaid_cash_direction(tmp_path):
    """A vendor repayment takes cash out; a customer repayment brings it in."""
    cfg, company_id, bank_id = make_company(tmp_path)
    record_transaction(cfg, company_id, "DEBT_TAKEN", 1000, date(2025, 1, 5),
                       account_id=bank_id, vendor_id=3)
    record_transaction(cfg, company_id, "DEBT_REPAID", 400, date(2025, 1, 6),
                       account_id=bank_id, vendor_id=3)
    assert get_account_balance(cfg, company_id, bank_id) == Decimal("600.00")

    record_transaction(cfg, company_id, "DEBT_TAKEN", 250, date(2025, 1, 7),
                       account_id=bank_id, customer_id=9)
    record_transaction(cfg, company_id, "DEBT_REPAID", 100, date(2025, 1, 8),
                       account_id=bank_id, customer_id=9)
    assert get_account_balance(cfg, company_id, bank_id) == Decimal("450.00")


def test_as_of_bound_is_end_of_day_inclusive(tmp_path):
    cfg, company_id, _ = make_company(tmp_path)
    record_transaction(cfg, company_id, "INCOME", 100,
                       datetime(2025, 3, 1, 23, 59, 59, 999000), category="Late sale")
    record_transaction(cfg, company_id, "INCOME", 50,
                       datetime(2025, 3, 2, 0, 0, 0), category="Next day")

    ledger = load_ledger(cfg, company_id, date(2025, 3, 1))
    assert [t.category for t in ledger.transactions] == ["Late sale"]

    ledger = load_ledger(cfg, company_id, date(2025, 3, 2))
    assert len(ledger.transactions) == 2


def test_load_ledger_never_mixes_companies(tmp_path):
    cfg, company_a, bank_a = make_company(tmp_path)
    company_b = create_company(cfg, "Other Co")
    insert_account(cfg, company_b, "B bank", "Bank", balance=999)
    insert_expense(cfg, company_b, "Rent", 300, date(2025, 1, 1))
    insert_project(cfg, company_b, "B project", 5000, date(2025, 1, 1))

    ledger = load_ledger(cfg, company_a, date(2025, 12, 31))
    assert [a.id for a in ledger.accounts] == [bank_a]
    assert ledger.expenses == ()
    assert ledger.projects == ()


def test_insert_expense_paid_from_account(tmp_path):
    cfg, company_id, bank_id = make_company(tmp_path)
    project_id = insert_project(cfg, company_id, "Kitchen", 8000, date(2025, 1, 2))

    expense_id = insert_expense(cfg, company_id, "Material", "450.50", date(2025, 1, 3),
                                project_id=project_id, account_id=bank_id)
    insert_expense(cfg, company_id, "Material", 500, date(2025, 1, 3),
                   payment_status=PaymentStatus.UNPAID, account_id=bank_id)

    assert get_account_balance(cfg, company_id, bank_id) == Decimal("-450.50")
    ledger = load_ledger(cfg, company_id, date(2025, 1, 31))
    kinds = {e.id: e.kind for e in ledger.expenses}
    assert kinds[expense_id] == ExpenseKind.DIRECT_COST
    assert [t.expense_id for t in ledger.transactions] == [expense_id]


def test_expense_for_unknown_project_writes_nothing(tmp_path):
    cfg, company_id, _ = make_company(tmp_path)
    with pytest.raises(ValueError):
        insert_expense(cfg, company_id, "Material", 100, date(2025, 1, 3), project_id=77)
    assert count_rows(cfg, "expenses", company_id) == 0


def test_full_payment_completes_project_at_payment_date(tmp_path):
    cfg, company_id, bank_id = make_company(tmp_path)
    project_id = insert_project(cfg, company_id, "Roof", 10000, date(2025, 1, 2),
                                advance_paid=2000, account_id=bank_id)
    record_payment(cfg, company_id, project_id, 3000, date(2025, 2, 1), account_id=bank_id)

    ledger = load_ledger(cfg, company_id, date(2025, 2, 28))
    assert ledger.projects[0].status == ProjectStatus.ACTIVE
    assert ledger.projects[0].remaining_amount == Decimal("5000.00")

    record_payment(cfg, company_id, project_id, 5000, datetime(2025, 3, 15, 10, 0),
                   account_id=bank_id)
    ledger = load_ledger(cfg, company_id, date(2025, 3, 31))
    project = ledger.projects[0]
    assert project.status == ProjectStatus.COMPLETED
    assert project.completed_at == datetime(2025, 3, 15, 10, 0)
    assert get_account_balance(cfg, company_id, bank_id) == Decimal("10000.00")


def test_payments_after_as_of_are_excluded(tmp_path):
    cfg, company_id, _ = make_company(tmp_path)
    project_id = insert_project(cfg, company_id, "Deck", 4000, date(2025, 1, 2))
    record_payment(cfg, company_id, project_id, 1000, date(2025, 1, 20))
    record_payment(cfg, company_id, project_id, 1000, date(2025, 2, 20))

    ledger = load_ledger(cfg, company_id, date(2025, 1, 31))
    assert ledger.projects[0].total_paid == Decimal("1000.00")


def test_sales_and_fixed_assets_round_trip(tmp_path):
    cfg, company_id, bank_id = make_company(tmp_path)
    product_id = insert_product(cfg, company_id, "Chair", "40")
    insert_sale(cfg, company_id, 150, date(2025, 2, 1), [NewSaleItem(product_id, 2)],
                tax=30, paid_amount=100, account_id=bank_id)
    insert_fixed_asset(cfg, company_id, "Van", 2000, date(2025, 6, 1), account_id=bank_id)

    ledger = load_ledger(cfg, company_id, date(2025, 3, 31))
    sale = ledger.sales[0]
    assert sale.total == Decimal("180.00")
    assert sale.payment_status == "PARTIAL"
    assert sale.items[0].product.cost_price == Decimal("40.00")
    # Bought after the as-of date.
    assert ledger.fixed_assets == ()
    assert get_account_balance(cfg, company_id, bank_id) == Decimal("-1900.00")


def test_project_scoped_ledger(tmp_path):
    cfg, company_id, _ = make_company(tmp_path)
    p1 = insert_project(cfg, company_id, "One", 1000, date(2025, 1, 2))
    p2 = insert_project(cfg, company_id, "Two", 2000, date(2025, 1, 2))
    insert_expense(cfg, company_id, "Labour", 100, date(2025, 1, 3), project_id=p1)
    insert_expense(cfg, company_id, "Labour", 200, date(2025, 1, 3), project_id=p2)

    ledger = load_ledger(cfg, company_id, date(2025, 1, 31), project_id=p2)
    assert ledger.project_id == p2
    assert [p.id for p in ledger.projects] == [p2]
    assert [e.amount for e in ledger.expenses] == [Decimal("200.00")]
    assert ledger.accounts == ()


def _validated(lines):
    return validate_journal_entry(make_entry(date(2025, 4, 1), "JE-1", None, lines))


def test_post_journal_lines_applies_normal_side_deltas(tmp_path):
    cfg, company_id, bank_id = make_company(tmp_path)
    equity_id = insert_account(cfg, company_id, "Owner", "Owner Equity")

    posted = post_journal_lines(
        cfg,
        company_id,
        _validated([
            {"account_id": bank_id, "debit": 1000, "credit": 0},
            {"account_id": equity_id, "debit": 0, "credit": 1000, "description": "Capital"},
        ]),
    )

    assert posted.entry.status == JournalStatus.POSTED
    assert len(posted.transaction_ids) == 2
    assert get_account_balance(cfg, company_id, bank_id) == Decimal("1000.00")
    assert get_account_balance(cfg, company_id, equity_id) == Decimal("1000.00")

    lines = list_journal_lines(cfg, company_id, posted.entry_id)
    assert [(line["debit"], line["credit"]) for line in lines] == [
        (Decimal("1000.00"), Decimal("0.00")),
        (Decimal("0.00"), Decimal("1000.00")),
    ]
    # Other companies cannot read the entry.
    assert list_journal_lines(cfg, company_id + 1, posted.entry_id) == []


def test_post_journal_lines_rolls_back_on_missing_account(tmp_path):
    cfg, company_id, bank_id = make_company(tmp_path)

    with pytest.raises(MissingAccountError) as excinfo:
        post_journal_lines(
            cfg,
            company_id,
            _validated([
                {"account_id": bank_id, "debit": 100, "credit": 0},
                {"account_id": 999, "debit": 0, "credit": 100},
            ]),
        )

    assert excinfo.value.line_index == 1
    assert count_rows(cfg, "journal_entries", company_id) == 0
    assert count_rows(cfg, "transactions", company_id) == 0
    assert get_account_balance(cfg, company_id, bank_id) == 0


def test_post_journal_lines_rejects_inactive_account(tmp_path):
    cfg, company_id, bank_id = make_company(tmp_path)
    closed_id = insert_account(cfg, company_id, "Old till", "Cash")
    set_account_active(cfg, company_id, closed_id, False)

    with pytest.raises(InactiveAccountError):
        post_journal_lines(
            cfg,
            company_id,
            _validated([
                {"account_id": closed_id, "debit": 100, "credit": 0},
                {"account_id": bank_id, "debit": 0, "credit": 100},
            ]),
        )

    assert count_rows(cfg, "journal_entries", company_id) == 0
    assert get_account_balance(cfg, company_id, bank_id) == 0


def test_account_of_another_company_counts_as_missing(tmp_path):
    cfg, company_a, bank_a = make_company(tmp_path)
    company_b = create_company(cfg, "Other Co")
    bank_b = insert_account(cfg, company_b, "B bank", "Bank")

    with pytest.raises(MissingAccountError):
        post_journal_lines(
            cfg,
            company_a,
            _validated([
                {"account_id": bank_a, "debit": 100, "credit": 0},
                {"account_id": bank_b, "debit": 0, "credit": 100},
            ]),
        )
    assert get_account_balance(cfg, company_b, bank_b) == 0
