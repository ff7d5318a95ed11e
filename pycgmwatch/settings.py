import logging
import os
from typing import Optional

from pycgmwatch.utils import load_json_file, save_json_file

log = logging.getLogger(__name__)

SETTINGSFILE = ".pycgmwatch.settings"  # Stores watch settings
ENV_PREFIX = "CGM_"

DEFAULTS = {
    "account_name": "",
    "password": "",
    "server": "us",
    "unit": "mgdl",
    "reversed": False,
    "high_threshold": 180,
    "low_threshold": 70,
    "vibe_low_soon_enabled": False,
    "vibe_low_soon_threshold": 80,
    "vibe_low_soon_repeat_minutes": 30,
    "vibe_enabled": False,
    "vibe_high_threshold": 250,
    "vibe_delay_minutes": 60,
    "vibe_repeat_minutes": 60,
}


def _to_int(value, default: int) -> int:
    # Zero or junk falls back to the default, as the configuration page does
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


def _to_bool(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


class Settings:
    """
    Watch settings, persisted as one JSON record

    Every field always holds a value: missing or stale stored keys fall back
    to DEFAULTS.
    """

    def __init__(self, settingsfile: Optional[str] = SETTINGSFILE, **values):
        self.settingsfile = settingsfile
        for key, default in DEFAULTS.items():
            setattr(self, key, default)
        if values:
            self.update(values)

    def has_credentials(self) -> bool:
        return bool(self.account_name and self.password)

    def as_dict(self) -> dict:
        return {key: getattr(self, key) for key in DEFAULTS}

    def update(self, values: dict):
        """Apply new values, coercing them to the type of each field"""
        for key, value in values.items():
            if key not in DEFAULTS:
                log.debug(f"Ignoring unknown setting {key}")
                continue
            if value is None:
                continue
            default = DEFAULTS[key]
            if isinstance(default, bool):
                value = _to_bool(value)
            elif isinstance(default, int):
                value = _to_int(value, default)
            else:
                value = str(value) or default
            setattr(self, key, value)

    def load(self) -> bool:
        if not self.settingsfile:
            return False
        stored = load_json_file(self.settingsfile)
        if stored is None:
            return False
        self.update({key: value for key, value in stored.items() if key in DEFAULTS})
        log.debug(f"Settings loaded: {self.settingsfile}")
        return True

    def load_env(self):
        """Override settings from CGM_<FIELD> environment variables"""
        values = {}
        for key in DEFAULTS:
            env = os.getenv(ENV_PREFIX + key.upper())
            if env is not None:
                values[key] = env
        if values:
            log.debug(f"Settings from environment: {', '.join(sorted(values))}")
            self.update(values)

    def save(self):
        if not self.settingsfile:
            return
        save_json_file(self.settingsfile, self.as_dict())
        log.debug(f"Settings saved: {self.settingsfile}")
