"""Tests for Alembic helper functions and CLI."""

import subprocess
import sys

from qrlogin.alembic_helper import QRLOGIN_TABLES, alembic_filters

from conftest import TEST_DATABASE_URL


# ---------------------------------------------------------------------------
# alembic_filters
# ---------------------------------------------------------------------------


class TestAlembicFilters:
    def test_returns_dict_with_both_keys(self):
        filters = alembic_filters()
        assert set(filters) == {"include_name", "include_object"}

    def test_include_name_rejects_qrlogin_tables(self):
        include_name = alembic_filters()["include_name"]
        for table in QRLOGIN_TABLES:
            assert include_name(table, "table", {}) is False

    def test_include_name_accepts_other_tables(self):
        include_name = alembic_filters()["include_name"]
        assert include_name("orders", "table", {}) is True
        assert include_name("qr_codes", "table", {}) is True

    def test_include_name_accepts_non_table_types(self):
        include_name = alembic_filters()["include_name"]
        assert include_name("qrlogin_tokens", "index", {}) is True
        assert include_name(None, "table", {}) is True

    def test_include_object(self):
        include_object = alembic_filters()["include_object"]
        assert include_object(None, "qrlogin_tokens", "table", True, None) is False
        assert include_object(None, "orders", "table", True, None) is True
        assert include_object(None, "qrlogin_tokens", "column", True, None) is True


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _cli(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "qrlogin.cli", *args],
        capture_output=True,
        text=True,
    )


class TestCLI:
    def test_help_exits_zero(self):
        result = _cli("migrate", "--help")
        assert result.returncode == 0
        assert "--database-url" in result.stdout

    def test_no_command_exits_nonzero(self):
        assert _cli().returncode != 0

    def test_missing_url_exits_nonzero(self):
        assert _cli("migrate").returncode != 0
        assert _cli("sweep").returncode != 0

    def test_migrate_then_sweep(self):
        migrated = _cli("migrate", "--database-url", TEST_DATABASE_URL)
        assert migrated.returncode == 0, migrated.stderr
        assert "migrations applied" in migrated.stdout

        swept = _cli("sweep", "--database-url", TEST_DATABASE_URL)
        assert swept.returncode == 0, swept.stderr
        assert "expired QR token(s)" in swept.stdout
