"""Configuration management using Pydantic v2.

The exporter is driven by a YAML document::

    log_level: info
    port: "9100"
    import:
      - conf.d/*.yaml
    hosts:
      - ip: 10.0.0.1
        describe: db primary
        ports:
          - {port: "5432", label: postgres}

Every ``import`` pattern is expanded as a glob and the ``hosts`` of each
matching document are appended to the main list. Imported documents are not
searched for further imports.

Tuning fields (timeouts, interval, concurrency cap, log format) can also be
provided as ``PORT_EXPORTER_*`` environment variables; values from the
document take precedence.
"""

import glob
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from port_exporter.core.types import Target
from port_exporter.logging import LOG_LEVELS, get_logger

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"


class ConfigError(Exception):
    """Raised when a configuration document cannot be loaded."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"{self.path}: {reason}")


def _as_port_string(value: Any) -> Any:
    """YAML reads ``port: 22`` as an int; ports are kept as strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return value


class PortSpec(BaseModel):
    """A single port to probe on a host."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    port: str = Field(min_length=1)
    label: str = ""

    @field_validator("port", mode="before")
    @classmethod
    def _coerce_port(cls, v: Any) -> Any:
        return _as_port_string(v)

    @field_validator("label", mode="before")
    @classmethod
    def _none_label(cls, v: Any) -> Any:
        return "" if v is None else v


class HostSpec(BaseModel):
    """A host and the ports probed on it."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    ip: str = Field(min_length=1, description="IP address or hostname")
    describe: str = ""
    ports: list[PortSpec] = Field(default_factory=list)

    @field_validator("describe", mode="before")
    @classmethod
    def _none_describe(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("ports", mode="before")
    @classmethod
    def _none_ports(cls, v: Any) -> Any:
        return [] if v is None else v

    def targets(self) -> list[Target]:
        return [
            Target(host=self.ip, port=p.port, label=p.label, describe=self.describe)
            for p in self.ports
        ]


class _ImportedDocument(BaseModel):
    """Imported documents only contribute hosts."""

    model_config = ConfigDict(extra="ignore")

    hosts: list[HostSpec] = Field(default_factory=list)

    @field_validator("hosts", mode="before")
    @classmethod
    def _none_hosts(cls, v: Any) -> Any:
        return [] if v is None else v


class ExporterConfig(BaseSettings):
    """Main configuration for the port exporter."""

    model_config = SettingsConfigDict(
        env_prefix="PORT_EXPORTER_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    # Logging
    log_level: Literal["debug", "info", "error", "off"] = Field(
        default="info",
        description="Log verbosity: debug, info, error or off (unknown values behave as info)",
    )
    log_format: Literal["text", "json"] = Field(
        default="text",
        description="Log output format: human-readable text or one JSON object per line",
    )

    # Serving endpoint
    port: str = Field(default="9100", description="TCP port the /metrics endpoint listens on")
    listen_address: str = Field(default="0.0.0.0", description="Address the /metrics endpoint binds")
    include_process_metrics: bool = Field(
        default=True,
        description="Expose process_* and python_info runtime metrics next to port_status",
    )

    # Probing
    probe_timeout: float = Field(default=1.0, gt=0, description="Connect timeout per probe in seconds")
    probe_interval: float = Field(default=10.0, gt=0, description="Sleep between probe cycles in seconds")
    max_concurrency: int | None = Field(
        default=None,
        ge=1,
        description="Cap on simultaneous probes (unset = one concurrent probe per target)",
    )

    # Targets
    imports: list[str] = Field(default_factory=list, description="Glob patterns of documents to import")
    hosts: list[HostSpec] = Field(default_factory=list)

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, v: Any) -> Any:
        if v is None:
            return "info"
        if v is False:
            # YAML 1.1 reads an unquoted `off` as a boolean
            return "off"
        level = str(v).strip().lower()
        return level if level in LOG_LEVELS else "info"

    @field_validator("log_format", mode="before")
    @classmethod
    def _normalize_log_format(cls, v: Any) -> Any:
        return "text" if v is None else str(v).strip().lower()

    @field_validator("port", mode="before")
    @classmethod
    def _coerce_port(cls, v: Any) -> Any:
        return _as_port_string(v)

    @field_validator("port")
    @classmethod
    def _validate_port(cls, v: str) -> str:
        if not v.isdigit() or not 0 <= int(v) <= 65535:
            raise ValueError(f"port must be a number between 0 and 65535, got {v!r}")
        return v

    @field_validator("imports", "hosts", mode="before")
    @classmethod
    def _none_list(cls, v: Any) -> Any:
        return [] if v is None else v

    @property
    def listen_port(self) -> int:
        return int(self.port)

    def targets(self) -> list[Target]:
        """Flatten hosts into probe targets, in declaration order."""
        out: list[Target] = []
        for host in self.hosts:
            out.extend(host.targets())
        return out


def _read_document(path: str | Path) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(path, f"cannot read file: {e.strerror or e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(path, f"invalid YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(path, f"expected a mapping at top level, got {type(data).__name__}")
    bad_keys = [k for k in data if not isinstance(k, str)]
    if bad_keys:
        raise ConfigError(path, f"top-level keys must be strings, got {bad_keys[0]!r}")
    return data


def _format_validation_error(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"])
        parts.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return "; ".join(parts)


def import_hosts(pattern: str) -> list[HostSpec]:
    """Load the hosts of every document matching a glob pattern.

    Matches are processed in sorted order. A pattern that matches nothing
    contributes no hosts. Any unreadable or malformed match raises
    :class:`ConfigError`.
    """
    files = sorted(glob.glob(pattern))
    if not files:
        logger.warning("Import pattern %r matched no files", pattern)
        return []

    hosts: list[HostSpec] = []
    for file in files:
        data = _read_document(file)
        try:
            doc = _ImportedDocument.model_validate(data)
        except ValidationError as e:
            raise ConfigError(file, _format_validation_error(e)) from e
        logger.debug("Imported %d host(s) from %s", len(doc.hosts), file)
        hosts.extend(doc.hosts)
    return hosts


def load_config(path: str | Path = DEFAULT_CONFIG_PATH) -> ExporterConfig:
    """Load the main document, then append the hosts of every import."""
    data = _read_document(path)
    data["imports"] = data.pop("import", None)

    try:
        config = ExporterConfig(**data)
    except ValidationError as e:
        raise ConfigError(path, _format_validation_error(e)) from e

    hosts = list(config.hosts)
    for pattern in config.imports:
        hosts.extend(import_hosts(pattern))

    return config.model_copy(update={"hosts": hosts})
