"""Tests for the configuration system."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

import pytest

from marinade_bond_monitor.config.settings import (
    DEFAULT_FIELDS,
    AddressConfig,
    MetricsConfig,
    MonitorConfig,
    _load_file,
)
from marinade_bond_monitor.errors.monitor_errors import ConfigError

if TYPE_CHECKING:
    from pathlib import Path

_TOML = textwrap.dedent(
    """\
    bonds_cli_bin_path = "/usr/local/bin/validator-bonds-institutional"
    listen_addr = "127.0.0.1:9200"
    fetch_interval = { secs = 30, nanos = 500000000 }
    command_timeout = 10

    [[addresses]]
    address = "Addr1"
    name = "first"

    [[addresses]]
    address = "Addr2"
    """
)


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    def test_monitor_defaults(self) -> None:
        cfg = MonitorConfig(addresses=[AddressConfig(address="Addr1")])
        assert cfg.fetch_interval == 60.0
        assert cfg.bonds_cli_bin_path == "validator-bonds-institutional"
        assert cfg.listen_addr == "0.0.0.0:9100"
        assert cfg.command_timeout == 20.0
        assert cfg.stale_after == 0.0
        assert cfg.concurrency == 1
        assert cfg.verify_address is True
        assert cfg.log_level == "INFO"
        assert isinstance(cfg.metrics, MetricsConfig)

    def test_metrics_defaults(self) -> None:
        cfg = MetricsConfig()
        assert cfg.prefix == "marinade_bond"
        assert cfg.field_specs() == DEFAULT_FIELDS

    def test_command_args(self) -> None:
        cfg = MonitorConfig(addresses=[AddressConfig(address="Addr1")])
        assert cfg.command_args("Addr1") == [
            "validator-bonds-institutional",
            "show-bond",
            "Addr1",
            "--with-funding",
        ]

    def test_targets_keep_config_order(self) -> None:
        cfg = MonitorConfig(
            addresses=[AddressConfig(address="B", name="b"), AddressConfig(address="A")]
        )
        assert [t.address for t in cfg.targets()] == ["B", "A"]
        assert cfg.targets()[0].name == "b"

    def test_host_and_port(self) -> None:
        cfg = MonitorConfig(addresses=[AddressConfig(address="A")], listen_addr="[::1]:9300")
        assert cfg.host == "::1"
        assert cfg.port == 9300


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_addresses_required(self) -> None:
        with pytest.raises(ValueError):
            MonitorConfig(addresses=[])

    def test_duplicate_addresses(self) -> None:
        with pytest.raises(ValueError, match="duplicate address"):
            MonitorConfig(addresses=[AddressConfig(address="A"), AddressConfig(address="A")])

    @pytest.mark.parametrize("addr", ["9100", "localhost", "host:port", "host:70000", ":9100"])
    def test_invalid_listen_addr(self, addr: str) -> None:
        with pytest.raises(ValueError):
            MonitorConfig(addresses=[AddressConfig(address="A")], listen_addr=addr)

    @pytest.mark.parametrize("interval", [0, -5, {"secs": 0, "nanos": 0}])
    def test_non_positive_interval(self, interval: object) -> None:
        with pytest.raises(ValueError):
            MonitorConfig(addresses=[AddressConfig(address="A")], fetch_interval=interval)

    def test_show_bond_args_need_placeholder(self) -> None:
        with pytest.raises(ValueError, match="placeholder"):
            MonitorConfig(addresses=[AddressConfig(address="A")], show_bond_args=["show-bond"])

    def test_unknown_log_level(self) -> None:
        with pytest.raises(ValueError):
            MonitorConfig(addresses=[AddressConfig(address="A")], log_level="chatty")

    def test_duplicate_metric_names(self) -> None:
        with pytest.raises(ValueError, match="duplicate metric"):
            MetricsConfig(
                fields=[
                    {"source": "a", "metric": "x"},
                    {"source": "b", "metric": "x"},
                ]
            )

    def test_invalid_metric_name(self) -> None:
        with pytest.raises(ValueError):
            MetricsConfig(fields=[{"source": "a", "metric": "bad-name"}])

    @pytest.mark.parametrize(
        "metric",
        [
            "up",
            "info",
            "last_success_timestamp_seconds",
            "poll_duration_seconds",
            "command_duration_seconds_bucket",
            "fetch_failures",
            "fetch_failures_total",
            "poll_cycles_total",
            "last_poll_timestamp_seconds",
        ],
    )
    def test_reserved_metric_name(self, metric: str) -> None:
        with pytest.raises(ValueError, match="reserved metric"):
            MetricsConfig(fields=[{"source": "up", "metric": metric}])

    def test_similar_metric_name_allowed(self) -> None:
        cfg = MetricsConfig(fields=[{"source": "uptime", "metric": "uptime"}])
        assert [f.metric for f in cfg.field_specs()] == ["uptime"]

    def test_hanging_accounts_must_fit_interval(self) -> None:
        with pytest.raises(ValueError, match="must be less than fetch_interval"):
            MonitorConfig(
                addresses=[AddressConfig(address=a) for a in ("A", "B", "C")],
                command_timeout=1,
                fetch_interval=1,
            )

    def test_sequential_timeouts_add_up(self) -> None:
        addresses = [AddressConfig(address=a) for a in ("A", "B", "C")]
        with pytest.raises(ValueError, match="3 sequential"):
            MonitorConfig(addresses=addresses, command_timeout=10, fetch_interval=30)
        cfg = MonitorConfig(addresses=addresses, command_timeout=9, fetch_interval=30)
        assert cfg.command_timeout == 9.0

    def test_concurrency_shortens_worst_case(self) -> None:
        cfg = MonitorConfig(
            addresses=[AddressConfig(address=a) for a in ("A", "B", "C")],
            command_timeout=10,
            fetch_interval=30,
            concurrency=3,
        )
        assert cfg.concurrency == 3

    def test_timeout_budget_in_file(self, tmp_path: Path) -> None:
        content = _TOML.replace("command_timeout = 10", "command_timeout = 20")
        with pytest.raises(ConfigError, match="fetch_interval"):
            MonitorConfig.from_file(_write(tmp_path, "config.toml", content))


# ---------------------------------------------------------------------------
# File loading
# ---------------------------------------------------------------------------


class TestFromFile:
    def test_toml(self, tmp_path: Path) -> None:
        cfg = MonitorConfig.from_file(_write(tmp_path, "config.toml", _TOML))
        assert cfg.bonds_cli_bin_path == "/usr/local/bin/validator-bonds-institutional"
        assert cfg.fetch_interval == 30.5
        assert cfg.host == "127.0.0.1"
        assert cfg.port == 9200
        assert [t.address for t in cfg.targets()] == ["Addr1", "Addr2"]
        assert cfg.targets()[1].name == ""

    def test_yaml(self, tmp_path: Path) -> None:
        content = textwrap.dedent(
            """\
            fetch_interval: 15
            command_timeout: 5
            stale_after: 120
            addresses:
              - address: Addr1
                name: first
            metrics:
              prefix: bonds
              fields:
                - source: balance
                  metric: balance
                  description: Bond balance
            """
        )
        cfg = MonitorConfig.from_file(_write(tmp_path, "config.yaml", content))
        assert cfg.fetch_interval == 15.0
        assert cfg.stale_after == 120.0
        assert cfg.metrics.prefix == "bonds"
        assert [f.metric for f in cfg.metrics.field_specs()] == ["balance"]

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BOND_MONITOR_LISTEN_ADDR", "0.0.0.0:9999")
        monkeypatch.setenv("BOND_MONITOR_COMMAND_TIMEOUT", "7")
        cfg = MonitorConfig.from_file(_write(tmp_path, "config.toml", _TOML))
        assert cfg.port == 9999
        assert cfg.command_timeout == 7.0
        assert cfg.bonds_cli_bin_path == "/usr/local/bin/validator-bonds-institutional"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Failed to read"):
            MonitorConfig.from_file(tmp_path / "nope.toml")

    def test_malformed_toml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Failed to parse"):
            MonitorConfig.from_file(_write(tmp_path, "config.toml", "addresses = [\n"))

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="Failed to parse"):
            MonitorConfig.from_file(_write(tmp_path, "config.yml", "a: [1, 2\n"))

    def test_yaml_not_a_mapping(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="top level"):
            _load_file(_write(tmp_path, "config.yaml", "- 1\n- 2\n"))

    def test_invalid_values(self, tmp_path: Path) -> None:
        content = _TOML.replace('listen_addr = "127.0.0.1:9200"', 'listen_addr = "nowhere"')
        with pytest.raises(ConfigError, match="Invalid config"):
            MonitorConfig.from_file(_write(tmp_path, "config.toml", content))

    def test_no_addresses(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            MonitorConfig.from_file(_write(tmp_path, "config.toml", "fetch_interval = 5\n"))

    def test_config_error_attributes(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as excinfo:
            MonitorConfig.from_file(tmp_path / "nope.toml")
        assert excinfo.value.code == "config"
