# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""
Dispatcher configuration.

Values come from model defaults, an optional YAML file and
``CRON_DISPATCH_*`` environment variables, in increasing precedence.
"""

import os
from pathlib import Path
from typing import Any, Literal, Mapping, Optional
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from src.core.exceptions import ConfigError
from src.core.models.tenant import RuntimeFormat, RuntimeLayout

CONFIG_PATH_ENV = "CRON_DISPATCH_CONFIG"
DEFAULT_CONFIG_PATH = "/etc/openshift/cron-dispatch.yaml"
ENV_PREFIX = "CRON_DISPATCH_"

DEFAULT_LAYOUTS: dict[RuntimeFormat, RuntimeLayout] = {
    RuntimeFormat.V1: RuntimeLayout(
        runtime_dir="cron-1.4",
        runner="/usr/libexec/openshift/cartridges/embedded/cron-1.4/info/bin/cron_runjobs.sh",
    ),
    RuntimeFormat.V2: RuntimeLayout(
        runtime_dir="cron",
        runner="{home}/cron/bin/cron_runjobs.sh",
    ),
}

_ENV_FIELDS = {
    "CONCURRENCY": "concurrency",
    "RUNTIME_FORMAT": "runtime_format",
    "LOG_LEVEL": "log_level",
    "LOG_FORMAT": "log_format",
    "SYSLOG": "syslog_enabled",
    "SYSLOG_ADDRESS": "syslog_address",
    "SELINUX": "selinux_enabled",
}


class DispatcherConfig(BaseModel):
    """Explicit configuration handed to every dispatcher component."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    concurrency: int = Field(default=5, ge=1)
    runtime_format: Optional[RuntimeFormat] = None
    format_probe_command: list[str] = Field(
        default_factory=lambda: ["/usr/bin/oo-cart-version"]
    )
    tenant_marker: str = "OpenShift guest"
    marker_template: str = "{home}/{runtime_dir}/run/jobs.enabled"
    jobs_dir_template: str = "{home}/app-root/repo/.openshift/cron/{frequency}"
    layouts: dict[RuntimeFormat, RuntimeLayout] = Field(
        default_factory=lambda: dict(DEFAULT_LAYOUTS)
    )
    selinux_enabled: bool = True
    selinux_user: str = "unconfined_u"
    selinux_role: str = "system_r"
    selinux_type: str = "openshift_t"
    runcon_path: str = "/usr/bin/runcon"
    mcs_level_command: Optional[list[str]] = None
    runner_path_env: str = "/usr/local/bin:/usr/bin:/bin"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["console", "json"] = "console"
    syslog_enabled: bool = True
    syslog_address: str = "/dev/log"
    syslog_facility: str = "local0"

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    def layout_for(self, runtime_format: RuntimeFormat) -> RuntimeLayout:
        """Get the cron runtime layout for a format generation.

        :param runtime_format: Detected format.
        :returns: Layout for that format.
        :raises ConfigError: If no layout is configured for the format.
        """
        try:
            return self.layouts[RuntimeFormat(runtime_format)]
        except (KeyError, ValueError) as exc:
            raise ConfigError(f"No runtime layout for format {runtime_format}") from exc

    def marker_path(self, home: Path | str, runtime_format: RuntimeFormat) -> Path:
        """Path of the tenant's ``jobs.enabled`` marker."""
        layout = self.layout_for(runtime_format)
        return Path(self.marker_template.format(home=str(home), runtime_dir=layout.runtime_dir))

    def runtime_path(self, home: Path | str, runtime_format: RuntimeFormat) -> Path:
        """Path of the tenant's cron runtime directory."""
        return Path(home) / self.layout_for(runtime_format).runtime_dir

    def jobs_dir(self, home: Path | str, frequency: str) -> Path:
        """Path of the tenant's job directory for one frequency."""
        return Path(self.jobs_dir_template.format(home=str(home), frequency=frequency))


def _read_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML mapping, returning an empty dict when the file is absent.

    :param path: YAML file path.
    :returns: Parsed mapping.
    :raises ConfigError: If the file is unreadable or not a mapping.
    """
    if not path.is_file():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for suffix, field_name in _ENV_FIELDS.items():
        value = environ.get(ENV_PREFIX + suffix)
        if value is not None and value != "":
            overrides[field_name] = value
    return overrides


def load_config(
    path: Optional[Path | str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DispatcherConfig:
    """Build the dispatcher configuration.

    :param path: YAML file to read; defaults to ``$CRON_DISPATCH_CONFIG``
        or the system-wide default path.
    :param environ: Environment mapping, defaults to ``os.environ``.
    :returns: Validated configuration.
    :raises ConfigError: If any source holds an invalid value.
    """
    env = os.environ if environ is None else environ
    config_path = Path(path or env.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH))
    values = _read_yaml(config_path)
    values.update(_env_overrides(env))
    try:
        return DispatcherConfig(**values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid dispatcher configuration: {exc}") from exc
