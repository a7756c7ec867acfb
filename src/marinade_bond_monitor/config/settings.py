"""Monitor settings loaded from a config file and environment variables.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``BOND_MONITOR_``, nested via ``__``)
2. TOML or YAML config file (positional ``config_path`` argument)
3. Defaults defined here

Example TOML::

    bonds_cli_bin_path = "validator-bonds-institutional"
    listen_addr = "0.0.0.0:9100"
    fetch_interval = { secs = 60, nanos = 0 }

    [[addresses]]
    address = "GkB1aW..."
    name = "main-validator"
"""

from __future__ import annotations

import math
import tomllib
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from marinade_bond_monitor.bonds.models import AccountTarget, FieldSpec
from marinade_bond_monitor.errors.monitor_errors import ConfigError

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_SHOW_BOND_ARGS = ("show-bond", "{address}", "--with-funding")

# Families the exporter emits itself under the same prefix, plus the sample
# names prometheus_client derives for its histograms and counters.
RESERVED_METRICS = frozenset(
    {
        "up",
        "info",
        "last_success_timestamp_seconds",
        "last_poll_timestamp_seconds",
        *(
            f"{name}{suffix}"
            for name in ("poll_duration_seconds", "command_duration_seconds")
            for suffix in ("", "_bucket", "_count", "_sum", "_created")
        ),
        *(
            f"{name}{suffix}"
            for name in ("fetch_failures", "poll_cycles")
            for suffix in ("", "_total", "_created")
        ),
    }
)

DEFAULT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("amountOwned", "owned_sol", "SOL owned by the bond"),
    FieldSpec("amountActive", "value_active_sol", "Active bond value in SOL"),
    FieldSpec("amountAtSettlements", "at_settlements_sol", "SOL locked in settlements"),
    FieldSpec("amountToWithdraw", "to_withdraw_sol", "SOL requested for withdrawal"),
    FieldSpec(
        "numberActiveStakeAccounts",
        "active_stake_accounts",
        "Number of stake accounts funding the bond",
    ),
    FieldSpec(
        "numberSettlementStakeAccounts",
        "settlement_stake_accounts",
        "Number of stake accounts locked in settlements",
    ),
)


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class AddressConfig(BaseModel):
    """One bond or vote account to monitor."""

    address: str = Field(min_length=1)
    name: str = ""

    def to_target(self) -> AccountTarget:
        return AccountTarget(address=self.address, name=self.name)


class FieldConfig(BaseModel):
    """Mapping of one JSON field of the CLI output to a metric."""

    source: str = Field(min_length=1, description="Dotted JSON key path")
    metric: str = Field(pattern=r"^[a-zA-Z_][a-zA-Z0-9_]*$")
    description: str = ""
    required: bool = True

    def to_spec(self) -> FieldSpec:
        return FieldSpec(
            source=self.source,
            metric=self.metric,
            description=self.description or f"Bond field {self.source}",
            required=self.required,
        )


class MetricsConfig(BaseSettings):
    """Prometheus metric naming."""

    model_config = SettingsConfigDict(
        env_prefix="BOND_MONITOR_METRICS__",
        case_sensitive=False,
    )

    prefix: str = Field(default="marinade_bond", pattern=r"^[a-zA-Z_][a-zA-Z0-9_]*$")
    fields: list[FieldConfig] = Field(
        default_factory=lambda: [
            FieldConfig(
                source=f.source,
                metric=f.metric,
                description=f.description,
                required=f.required,
            )
            for f in DEFAULT_FIELDS
        ]
    )

    @field_validator("fields")
    @classmethod
    def _unique_metrics(cls, value: list[FieldConfig]) -> list[FieldConfig]:
        names = [f.metric for f in value]
        dupes = sorted({n for n in names if names.count(n) > 1})
        if dupes:
            raise ValueError(f"duplicate metric names: {', '.join(dupes)}")
        reserved = sorted(n for n in set(names) if n in RESERVED_METRICS)
        if reserved:
            raise ValueError(f"reserved metric names: {', '.join(reserved)}")
        return value

    def field_specs(self) -> tuple[FieldSpec, ...]:
        return tuple(f.to_spec() for f in self.fields)


# ---------------------------------------------------------------------------
# File loading
# ---------------------------------------------------------------------------


def _load_file(path: str | Path) -> dict[str, Any]:
    """Load a TOML or YAML configuration file and return its contents.

    Raises:
        ConfigError: If the file is missing, unreadable or malformed.
    """
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {p}: {exc}") from exc

    try:
        if p.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = tomllib.loads(text)
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse config file {p}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {p} must contain a table/mapping at the top level")
    return data


def _parse_listen_addr(value: str) -> tuple[str, int]:
    host, sep, port = value.rpartition(":")
    if not sep or not host:
        raise ValueError(f"listen_addr must be 'host:port', got {value!r}")
    host = host.strip("[]")
    try:
        port_num = int(port)
    except ValueError:
        raise ValueError(f"invalid port in listen_addr {value!r}") from None
    if not 0 <= port_num <= 65535:
        raise ValueError(f"port out of range in listen_addr {value!r}")
    return host, port_num


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class MonitorConfig(BaseSettings):
    """Top-level monitor configuration.

    Loads settings from environment variables (``BOND_MONITOR_`` prefix),
    an optional TOML/YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="BOND_MONITOR_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    addresses: list[AddressConfig] = Field(min_length=1)
    fetch_interval: float = Field(default=60.0, gt=0, description="Seconds between polls")
    bonds_cli_bin_path: str = Field(default="validator-bonds-institutional", min_length=1)
    listen_addr: str = "0.0.0.0:9100"
    command_timeout: float = Field(default=20.0, gt=0, description="Seconds per CLI call")
    stale_after: float = Field(
        default=0.0,
        ge=0,
        description="Seconds a failed account keeps exporting its last good values",
    )
    concurrency: int = Field(default=1, ge=1)
    verify_address: bool = True
    show_bond_args: list[str] = Field(default_factory=lambda: list(DEFAULT_SHOW_BOND_ARGS))
    log_level: str = "INFO"
    config_path: str = ""

    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_file(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        file_data = _load_file(config_path)
        # File values serve as defaults; env vars (already in *values*) win.
        for key, val in file_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @field_validator("fetch_interval", "command_timeout", "stale_after", mode="before")
    @classmethod
    def _duration(cls, value: Any) -> Any:
        """Accept plain seconds or the ``{secs, nanos}`` table form."""
        if isinstance(value, dict):
            try:
                return float(value.get("secs", 0)) + float(value.get("nanos", 0)) / 1e9
            except (TypeError, ValueError):
                raise ValueError(f"invalid duration table: {value!r}") from None
        return value

    @field_validator("listen_addr")
    @classmethod
    def _valid_listen_addr(cls, value: str) -> str:
        _parse_listen_addr(value)
        return value

    @field_validator("log_level")
    @classmethod
    def _valid_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @field_validator("show_bond_args")
    @classmethod
    def _has_placeholder(cls, value: list[str]) -> list[str]:
        if not any("{address}" in arg for arg in value):
            raise ValueError("show_bond_args must contain an '{address}' placeholder")
        return value

    @model_validator(mode="after")
    def _unique_addresses(self) -> Self:
        seen: set[str] = set()
        for entry in self.addresses:
            if entry.address in seen:
                raise ValueError(f"duplicate address in config: {entry.address}")
            seen.add(entry.address)
        return self

    @model_validator(mode="after")
    def _timeouts_fit_interval(self) -> Self:
        """A poll of hanging accounts must still publish within one interval."""
        rounds = math.ceil(len(self.addresses) / self.concurrency)
        worst_case = self.command_timeout * rounds
        if worst_case >= self.fetch_interval:
            raise ValueError(
                f"command_timeout {self.command_timeout:g}s over {rounds} sequential "
                f"round(s) of accounts ({worst_case:g}s) must be less than "
                f"fetch_interval {self.fetch_interval:g}s; lower command_timeout "
                "or raise concurrency"
            )
        return self

    # -- Derived values --

    @property
    def host(self) -> str:
        return _parse_listen_addr(self.listen_addr)[0]

    @property
    def port(self) -> int:
        return _parse_listen_addr(self.listen_addr)[1]

    def targets(self) -> tuple[AccountTarget, ...]:
        """Return the immutable set of monitored accounts, in config order."""
        return tuple(a.to_target() for a in self.addresses)

    def command_args(self, address: str) -> list[str]:
        """Build the full argv for fetching *address*."""
        args = [arg.replace("{address}", address) for arg in self.show_bond_args]
        return [self.bonds_cli_bin_path, *args]

    @classmethod
    def from_file(cls, path: str | Path) -> Self:
        """Construct ``MonitorConfig`` from a TOML or YAML file.

        Environment variables still override file values.

        Raises:
            ConfigError: If the file cannot be loaded or fails validation.
        """
        try:
            return cls(config_path=str(path))
        except ValidationError as exc:
            raise ConfigError(f"Invalid config file {path}: {exc}") from exc
