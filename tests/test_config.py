from decimal import Decimal

import pytest

from smb_ledger.config import load_app_config
from smb_ledger.revenue import RecognitionPolicy


def write_config(tmp_path, content: str):
    path = tmp_path / "smb_ledger_config.toml"
    path.write_text(content, encoding="utf-8")
    return path


def test_defaults_when_sections_are_missing(tmp_path):
    path = write_config(tmp_path, "")
    config = load_app_config(str(path))

    assert config.database.engine == "sqlite"
    assert config.database.path == (tmp_path / "data/db/smb_ledger.sqlite").resolve()
    assert config.reports.summary_policy == RecognitionPolicy.CASH
    assert config.reports.balance_sheet_policy == RecognitionPolicy.ACCRUAL
    assert config.reports.depreciation_rate == Decimal("0.15")
    assert config.reports.balance_tolerance == Decimal("1")
    assert config.display.mode == "table"
    assert config.log_level == "WARNING"


def test_full_configuration(tmp_path):
    path = write_config(
        tmp_path,
        """
[database]
engine = "sqlite"
path = "ledger.sqlite"

[reports]
summary_policy = "Accrual"
balance_sheet_policy = "cash"
depreciation_rate = 0.2
balance_tolerance = "0.01"
workers = 1

[display]
mode = "both"
decimals = 0

[logging]
level = "debug"
""",
    )
    config = load_app_config(str(path))

    assert config.database.path == (tmp_path / "ledger.sqlite").resolve()
    assert config.reports.summary_policy == RecognitionPolicy.ACCRUAL
    assert config.reports.balance_sheet_policy == RecognitionPolicy.CASH
    assert config.reports.depreciation_rate == Decimal("0.2")
    assert config.reports.balance_tolerance == Decimal("0.01")
    assert config.reports.workers == 1
    assert config.display.mode == "both"
    assert config.display.decimals == 0
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    "content",
    [
        '[reports]\nsummary_policy = "mixed"\n',
        "[reports]\ndepreciation_rate = 1.5\n",
        "[reports]\nbalance_tolerance = -1\n",
        "[reports]\nworkers = 0\n",
        '[display]\nmode = "html"\n',
        '[logging]\nlevel = "LOUD"\n',
        "reports = 3\n",
        "[reports\n",
    ],
)
def test_invalid_configuration_is_rejected(tmp_path, content):
    path = write_config(tmp_path, content)
    with pytest.raises(ValueError):
        load_app_config(str(path))


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_app_config(str(tmp_path / "nope.toml"))
