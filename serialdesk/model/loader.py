# serialdesk/model/loader.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml

from .settings import BAUD_RATES, SerialSettings

DEFAULT_FILENAME = "serial.yml"


class ConfigLoader:
    """
    Loads the serial settings catalog from YAML into typed settings.

    Loads:
        - serial.yml

    After calling load_all(), exposes:
        self.baud_rates : list[int]
        self.defaults   : SerialSettings
        self.profiles   : dict[str, SerialSettings]  (defaults + profile overrides)
    """

    def __init__(self, config_dir: str | Path, filename: str = DEFAULT_FILENAME):
        self.config_dir = Path(config_dir)
        self.filename = filename
        self.baud_rates: List[int] = list(BAUD_RATES)
        self.defaults: SerialSettings = SerialSettings()
        self.profiles: Dict[str, SerialSettings] = {}

    @property
    def path(self) -> Path:
        return self.config_dir / self.filename

    # ---------------------------------------------------------------------
    # YAML utility
    # ---------------------------------------------------------------------
    def _load_yaml(self) -> dict:
        full_path = self.path
        if not full_path.exists():
            raise FileNotFoundError(f"Missing settings file: {full_path}")

        with open(full_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"{self.filename} must contain a mapping at top level")
        return data

    # ---------------------------------------------------------------------
    # Public entry point
    # ---------------------------------------------------------------------
    def load_all(self) -> None:
        self.profiles.clear()

        data = self._load_yaml()
        self._load_baud_rates(data.get("baud_rates"))
        self._load_defaults(data.get("defaults"))
        self._load_profiles(data.get("profiles"))

    def _load_baud_rates(self, raw: Any) -> None:
        if raw is None:
            self.baud_rates = list(BAUD_RATES)
            return
        if not isinstance(raw, list) or not raw:
            raise ValueError("'baud_rates' must be a non-empty list")

        rates: List[int] = []
        for value in raw:
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"Invalid baud rate in 'baud_rates': {value!r}")
            rates.append(value)
        self.baud_rates = sorted(set(rates))

    def _load_defaults(self, raw: Any) -> None:
        if raw is None:
            self.defaults = SerialSettings()
            return
        if not isinstance(raw, dict):
            raise ValueError("'defaults' must be a mapping")
        self.defaults = SerialSettings.from_mapping(raw)

    def _load_profiles(self, raw: Any) -> None:
        raw = raw or {}
        if not isinstance(raw, dict):
            raise ValueError("'profiles' must be a mapping")

        for name, overrides in raw.items():
            overrides = overrides or {}
            if not isinstance(overrides, dict):
                raise ValueError(f"Profile '{name}' must be a mapping")
            self.profiles[str(name)] = self.defaults.merged(overrides)

    # ---------------------------------------------------------------------
    # Accessors
    # ---------------------------------------------------------------------
    def get_profile(self, name: str) -> SerialSettings:
        profile = self.profiles.get(name)
        if profile is None:
            raise ValueError(f"Profile '{name}' not found")
        return profile
