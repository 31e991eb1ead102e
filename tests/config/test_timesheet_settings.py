"""
Tests for timesheet_config: YAML loading, validation, checksum and the
bridge into the kernel's WorkflowPolicy.
"""

from decimal import Decimal

import pytest
import yaml

from timesheet_config import DEFAULT_CONFIG_PATH, ENV_VAR, get_active_config
from timesheet_config.bridges import to_workflow_policy
from timesheet_config.loader import compute_checksum, parse_settings
from timesheet_config.schema import TimesheetSettings
from timesheet_kernel.domain.policy import WorkflowPolicy


def _write(tmp_path, data, name="timesheet.yaml"):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return path


class TestResolution:

    def test_packaged_defaults(self, monkeypatch):
        monkeypatch.delenv(ENV_VAR, raising=False)

        settings = get_active_config()

        assert settings == TimesheetSettings()
        assert len(settings.checksum) == 64

    def test_env_var_overrides_defaults(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {"timesheet": {"lock_timeout_ms": 250}})
        monkeypatch.setenv(ENV_VAR, str(path))

        assert get_active_config().lock_timeout_ms == 250

    def test_explicit_path_wins_over_env_var(self, tmp_path, monkeypatch):
        env_path = _write(tmp_path, {"timesheet": {"max_period_days": 14}}, "env.yaml")
        explicit = _write(tmp_path, {"timesheet": {"max_period_days": 31}}, "explicit.yaml")
        monkeypatch.setenv(ENV_VAR, str(env_path))

        assert get_active_config(explicit).max_period_days == 31

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_trace_logged(self, captured_logs):
        settings = get_active_config(DEFAULT_CONFIG_PATH)

        [trace] = [r for r in captured_logs() if r["message"] == "TIMESHEET_CONFIG_TRACE"]
        assert trace["checksum"] == settings.checksum
        assert trace["config_path"] == str(DEFAULT_CONFIG_PATH)


class TestParsing:

    def test_absent_keys_keep_defaults(self):
        settings = parse_settings({"timesheet": {"max_hours_per_day": 12.5}})

        assert settings.max_hours_per_day == Decimal("12.5")
        assert settings.max_comment_length == 500

    def test_role_names_normalized(self):
        settings = parse_settings({"timesheet": {"general_manager_role_names": [" GM ", "Owner"]}})

        assert settings.general_manager_role_names == frozenset({"gm", "owner"})

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="max_hours_per_week"):
            parse_settings({"timesheet": {"max_hours_per_week": 40}})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"lock_timeout_ms": True},
            {"lock_timeout_ms": "5000"},
            {"lock_timeout_ms": 0},
            {"max_period_days": 0},
            {"max_message_length": -1},
            {"max_hours_per_day": "lots"},
            {"max_hours_per_day": 0},
            {"manager_role_names": "admin"},
            {"general_manager_role_names": []},
        ],
    )
    def test_bad_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            parse_settings({"timesheet": overrides})

    def test_non_mapping_file_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError, match="mapping"):
            get_active_config(path)


class TestChecksum:

    def test_same_content_same_checksum(self, tmp_path):
        data = {"timesheet": {"lock_timeout_ms": 100, "max_period_days": 7}}
        a = get_active_config(_write(tmp_path, data, "a.yaml"))
        b = get_active_config(_write(tmp_path, data, "b.yaml"))

        assert a.checksum == b.checksum

    def test_key_order_irrelevant(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})

    def test_different_content_different_checksum(self):
        a = parse_settings({"timesheet": {"lock_timeout_ms": 100}})
        b = parse_settings({"timesheet": {"lock_timeout_ms": 200}})

        assert a.checksum != b.checksum


class TestPolicyBridge:

    def test_defaults_match_kernel_defaults(self):
        assert to_workflow_policy(TimesheetSettings()) == WorkflowPolicy()

    def test_overrides_flow_through(self):
        settings = parse_settings({"timesheet": {
            "max_hours_per_day": 10,
            "lock_timeout_ms": 750,
            "manager_role_names": ["director"],
        }})

        policy = to_workflow_policy(settings)

        assert policy.max_hours_per_day == Decimal("10")
        assert policy.lock_timeout_ms == 750
        assert policy.manager_role_names == frozenset({"director"})
