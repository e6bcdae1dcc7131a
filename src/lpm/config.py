"""Settings for lpm, from defaults, a YAML file and command line flags."""

import logging
import math
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from lpm.audit import DEFAULT_AUDIT_LOG
from lpm.errors import InvalidArgument

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LPM_CONFIG"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True, frozen=True)
class Settings:
    """Runtime settings."""

    top_n: int = 10
    threshold: float = 80.0  # CPU percent
    audit_log: str = DEFAULT_AUDIT_LOG
    poll_rate: float = 2.0  # Seconds
    log_file: str | None = None
    log_level: str = "WARNING"

    def validate(self) -> "Settings":
        """Return self, or raise InvalidArgument naming the bad field."""
        if isinstance(self.top_n, bool) or not isinstance(self.top_n, int) or self.top_n < 0:
            raise InvalidArgument(f"top_n must be a non-negative integer, got {self.top_n!r}")
        if (
            isinstance(self.threshold, bool)
            or not isinstance(self.threshold, (int, float))
            or not math.isfinite(self.threshold)
        ):
            raise InvalidArgument(f"threshold must be a finite number, got {self.threshold!r}")
        if (
            isinstance(self.poll_rate, bool)
            or not isinstance(self.poll_rate, (int, float))
            or not self.poll_rate > 0
        ):
            raise InvalidArgument(f"poll_rate must be positive, got {self.poll_rate!r}")
        if not isinstance(self.audit_log, str) or not self.audit_log:
            raise InvalidArgument(f"audit_log must be a path, got {self.audit_log!r}")
        if str(self.log_level).upper() not in LOG_LEVELS:
            raise InvalidArgument(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return self


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise InvalidArgument(f"cannot read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise InvalidArgument(f"invalid YAML in config {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidArgument(f"config {path} must contain a mapping")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known, key=str)
    if unknown:
        raise InvalidArgument(f"unknown config keys in {path}: {', '.join(map(str, unknown))}")
    return data


def load_settings(path: str | os.PathLike[str] | None = None, **overrides: Any) -> Settings:
    """
    Build settings from defaults, an optional YAML file and overrides.

    The file named by ``path`` (or the ``LPM_CONFIG`` environment variable)
    is merged over the defaults. Overrides whose value is None are ignored,
    which lets unset command line flags fall through.

    Raises:
        InvalidArgument: If the file cannot be used or a value is invalid.
    """
    settings = Settings()

    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or None
    if path is not None:
        data = _read_config_file(Path(path))
        settings = replace(settings, **data)
        logger.info("Loaded config from %s", path)

    given = {key: value for key, value in overrides.items() if value is not None}
    if given:
        try:
            settings = replace(settings, **given)
        except TypeError as exc:
            raise InvalidArgument(str(exc)) from exc

    return settings.validate()
