"""
Tests for configuration loading.

Verifies the packaged defaults, path resolution through
RENTAL_CONFIG_PATH, schema validation and checksum stability.
"""

from decimal import Decimal

import pytest
import yaml

from rental_config import CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH, get_active_config
from rental_config.loader import compute_checksum, load_config, parse_config
from rental_config.schema import BillingDefaults, RentalConfig


def _write(tmp_path, data):
    path = tmp_path / "rental.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaults:

    def test_packaged_defaults(self):
        config = load_config(DEFAULT_CONFIG_PATH)

        assert config.config_id == "rental-defaults"
        assert config.currency == "QAR"
        assert config.billing.due_day_of_month == 1
        assert config.billing.daily_late_fee_rate == Decimal("120.00")
        assert config.billing.late_fee_cap == Decimal("3000.00")
        assert config.scheduling.side_effect_timeout_seconds == 15.0
        assert config.notifications.failure_threshold == 3
        assert config.notifications.min_interval_seconds == 30.0
        assert config.portfolio.expiring_soon_days == 30

    def test_packaged_defaults_match_schema_defaults(self):
        loaded = load_config(DEFAULT_CONFIG_PATH)
        schema = RentalConfig()

        assert loaded.billing == schema.billing
        assert loaded.scheduling == schema.scheduling
        assert loaded.notifications == schema.notifications


class TestActiveConfig:

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {
            "config_id": "doha-branch",
            "version": 2,
            "billing": {"daily_late_fee_rate": "80", "late_fee_cap": "2000"},
        })
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))

        config = get_active_config()

        assert config.config_id == "doha-branch"
        assert config.billing.daily_late_fee_rate == Decimal("80")
        assert config.billing.due_day_of_month == 1

    def test_explicit_path_beats_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(CONFIG_PATH_ENV, str(tmp_path / "missing.yaml"))

        config = get_active_config(DEFAULT_CONFIG_PATH)

        assert config.config_id == "rental-defaults"

    def test_trace_logged(self, monkeypatch, captured_logs):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)

        config = get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "RENTAL_CONFIG_TRACE"]
        assert traces[0]["checksum"] == config.checksum

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "nope.yaml")


class TestValidation:

    def test_config_id_required(self):
        with pytest.raises(KeyError):
            parse_config({"version": 1})

    @pytest.mark.parametrize(
        "section,values",
        [
            ("billing", {"due_day_of_month": 32}),
            ("billing", {"late_fee_cap": "-1"}),
            ("billing", {"daily_late_fee_rate": "lots"}),
            ("scheduling", {"side_effect_timeout_seconds": 0}),
            ("notifications", {"failure_threshold": -1}),
            ("portfolio", {"expiring_soon_days": 0}),
        ],
    )
    def test_invalid_values_rejected(self, section, values):
        with pytest.raises(ValueError):
            parse_config({"config_id": "bad", "version": 1, section: values})

    def test_billing_defaults_are_frozen(self):
        defaults = BillingDefaults()

        with pytest.raises(AttributeError):
            defaults.late_fee_cap = Decimal("1")


class TestChecksum:

    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": {"c": 2}}) == compute_checksum(
            {"b": {"c": 2}, "a": 1},
        )

    def test_changes_with_content(self, tmp_path):
        first = load_config(_write(tmp_path, {"config_id": "x", "version": 1}))
        second = parse_config({"config_id": "x", "version": 2})

        assert first.checksum != second.checksum
        assert len(first.checksum) == 64
