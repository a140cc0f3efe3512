"""
Tests for rent_config -- loading, merging, and validating configuration.
"""

from uuid import UUID

import pytest

from rent_config import (
    CONFIG_PATH_ENV,
    DATABASE_URL_ENV,
    get_active_config,
)
from rent_config.loader import compute_checksum, merge, parse_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)


def _write(tmp_path, text, name="override.yaml"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    def test_packaged_defaults(self):
        config = get_active_config()

        assert config.config_id == "default"
        assert config.billing.max_workers == 4
        assert config.billing.run_timeout_seconds == 3600.0
        assert config.billing.tenant_types == ("rent",)
        assert config.billing.currency_symbol == "₹"
        assert config.billing.actor_id is None
        assert config.scheduler.cron_expression == "0 0 * * *"
        assert config.scheduler.run_on_start is False
        assert config.scheduler.timezone == "UTC"
        assert config.database.url == "sqlite:///rent_billing.db"
        assert config.logging.level == "INFO"
        assert config.source_path.endswith("default.yaml")

    def test_config_is_frozen(self):
        config = get_active_config()
        with pytest.raises(AttributeError):
            config.billing.max_workers = 8  # type: ignore[misc]


class TestOverrides:
    def test_file_overrides_only_named_keys(self, tmp_path):
        path = _write(tmp_path, "config_id: site-a\nbilling:\n  max_workers: 8\n")

        config = get_active_config(path)

        assert config.config_id == "site-a"
        assert config.billing.max_workers == 8
        assert config.billing.run_timeout_seconds == 3600.0
        assert config.source_path == str(path)

    def test_env_names_config_file(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "scheduler:\n  cron_expression: '30 6 * * *'\n")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))

        assert get_active_config().scheduler.cron_expression == "30 6 * * *"

    def test_argument_beats_env(self, tmp_path, monkeypatch):
        from_env = _write(tmp_path, "config_id: env\n", name="env.yaml")
        from_arg = _write(tmp_path, "config_id: arg\n", name="arg.yaml")
        monkeypatch.setenv(CONFIG_PATH_ENV, str(from_env))

        assert get_active_config(from_arg).config_id == "arg"

    def test_database_url_env(self, monkeypatch):
        monkeypatch.setenv(DATABASE_URL_ENV, "postgresql://billing@db/rent")

        assert get_active_config().database.url == "postgresql://billing@db/rent"

    def test_actor_id_parsed(self, tmp_path):
        path = _write(
            tmp_path, "billing:\n  actor_id: 22222222-2222-2222-2222-222222222222\n",
        )

        assert get_active_config(path).billing.actor_id == UUID(
            "22222222-2222-2222-2222-222222222222"
        )

    def test_null_timeout_disables_it(self, tmp_path):
        path = _write(tmp_path, "billing:\n  run_timeout_seconds: null\n")

        assert get_active_config(path).billing.run_timeout_seconds is None

    def test_scheduler_timezone(self, tmp_path):
        path = _write(tmp_path, "scheduler:\n  timezone: Asia/Kolkata\n")

        assert get_active_config(path).scheduler.timezone == "Asia/Kolkata"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "missing.yaml")

    def test_logs_config_identity(self, tmp_path, captured_logs):
        path = _write(tmp_path, "config_id: site-a\nversion: 3\n")

        config = get_active_config(path)

        entry = next(r for r in captured_logs() if r["message"] == "billing_config_loaded")
        assert entry["config_id"] == "site-a"
        assert entry["config_version"] == 3
        assert entry["checksum"] == config.checksum


class TestValidation:
    @pytest.mark.parametrize(
        "text, message",
        [
            ("billing:\n  max_wrokers: 2\n", "Unknown key"),
            ("extras:\n  a: 1\n", "Unknown configuration section"),
            ("billing:\n  max_workers: 0\n", "billing.max_workers"),
            ("billing:\n  max_workers: true\n", "billing.max_workers"),
            ("billing:\n  run_timeout_seconds: -5\n", "billing.run_timeout_seconds"),
            ("billing:\n  tenant_types: []\n", "must not be empty"),
            ("billing:\n  tenant_types: [office]\n", "unknown type"),
            ("billing:\n  actor_id: system\n", "not a UUID"),
            ("billing:\n  notification_sink: email\n", "notification_sink"),
            ("billing:\n  audit_sink: log\n", "audit_sink"),
            ("scheduler:\n  cron_expression: 'daily'\n", "cron_expression is invalid"),
            ("scheduler:\n  tick_interval_seconds: 0\n", "tick_interval_seconds"),
            ("scheduler:\n  timezone: Mars/Olympus\n", "scheduler.timezone"),
            ("database:\n  url: ''\n", "database.url"),
            ("logging:\n  level: LOUD\n", "logging.level"),
            ("billing: 5\n", "must be a mapping"),
        ],
    )
    def test_rejected(self, tmp_path, text, message):
        path = _write(tmp_path, text)
        with pytest.raises(ValueError, match=message):
            get_active_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = _write(tmp_path, "- a\n- b\n")
        with pytest.raises(ValueError, match="top level must be a mapping"):
            get_active_config(path)

    def test_level_is_case_insensitive(self, tmp_path):
        path = _write(tmp_path, "logging:\n  level: debug\n")
        assert get_active_config(path).logging.level == "DEBUG"


class TestLoaderHelpers:
    def test_merge_is_section_wise(self):
        base = {"billing": {"max_workers": 4, "currency_symbol": "₹"}, "config_id": "a"}
        merged = merge(base, {"billing": {"max_workers": 2}, "config_id": "b"})

        assert merged == {"billing": {"max_workers": 2, "currency_symbol": "₹"}, "config_id": "b"}
        assert base["billing"]["max_workers"] == 4

    def test_checksum_ignores_key_order(self):
        assert compute_checksum({"a": 1, "b": {"c": 2}}) == compute_checksum({"b": {"c": 2}, "a": 1})

    def test_checksum_changes_with_values(self):
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_parse_empty_mapping_uses_defaults(self):
        config = parse_config({})

        assert config.billing.max_workers == 4
        assert config.source_path is None
