# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SMB Ledger
----------

A multi-tenant financial statement engine for Small and Medium-sized
Businesses (SMBs). It reads the operational records of a company
(transactions, expenses, projects and their payments, shop sales, fixed
assets, inventory and accounts) and produces, as of any date:

- a financial summary (profit & loss and position), cash basis by default,
- a balance sheet, accrual basis by default, optionally per project,
- a net debt statement per counterparty,
- balanced manual journal postings, validated before any write.

Money is handled as ``Decimal`` end to end and stored as integer cents.
Computation (engine), storage (SQLite), configuration (TOML) and
presentation (CLI) are kept separate.


Version: 0.1.0

Usage:
    smb-ledger --help
"""

__all__ = ["engine", "journal", "ledger_service", "views", "io"]

__version__ = "0.1.0"
