"""Configuration of the Sunbreak monitor service."""
from __future__ import annotations

from dataclasses import dataclass, fields
import json
import logging
import os
from pathlib import Path
from typing import Any

from sunbreak_core.const import DEFAULT_EVALUATION_INTERVAL

_LOGGER = logging.getLogger(__name__)

OPTIONS_FILE = Path("/data/options.json")
ENV_PREFIX = "SUNBREAK_"


@dataclass
class MonitorConfig:
    """Add-on options, overridable from the environment."""

    log_level: str = "info"
    host: str = "0.0.0.0"
    port: int = 8100
    share_dir: str = "/share/sunbreak"
    interval: int = DEFAULT_EVALUATION_INTERVAL
    timezone: str | None = None
    webhook_url: str | None = None
    webhook_token: str | None = None
    webhook_timeout: int = 10
    context_name: str = "monitor"


def _coerce(value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        return str(value).lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        return int(value)
    if value == "":
        return None
    return str(value)


def load_config(options_file: Path | None = None, environ: dict[str, str] | None = None) -> MonitorConfig:
    """Merge the add-on options file and ``SUNBREAK_*`` variables."""
    options_file = options_file or Path(os.environ.get(f"{ENV_PREFIX}OPTIONS_FILE", OPTIONS_FILE))
    environ = os.environ if environ is None else environ

    values: dict[str, Any] = {}
    if options_file.exists():
        try:
            values.update(json.loads(options_file.read_text(encoding="utf-8")))
        except (OSError, ValueError) as err:
            _LOGGER.warning(f"Ignoring unreadable options file {options_file}: {err}")

    # The container timezone is the default when no zone is configured
    if not values.get("timezone") and environ.get("TZ"):
        values["timezone"] = environ["TZ"]

    config = MonitorConfig()
    for field in fields(MonitorConfig):
        env_value = environ.get(f"{ENV_PREFIX}{field.name.upper()}")
        value = env_value if env_value is not None else values.get(field.name)
        if value is None:
            continue
        try:
            setattr(config, field.name, _coerce(value, field.default))
        except (TypeError, ValueError):
            _LOGGER.warning(f"Invalid value for {field.name}: {value!r}, using {field.default!r}")
    return config


_config: MonitorConfig | None = None


def get_config() -> MonitorConfig:
    """Return the process wide configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
