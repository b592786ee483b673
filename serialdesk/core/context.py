# serialdesk/core/context.py
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from serialdesk.model.loader import ConfigLoader
from serialdesk.model.settings import SerialSettings

from serialdesk.core.errors import SettingsError


def default_config_dir() -> Path:
    # <package>/metadata, based on this file's location
    return Path(__file__).resolve().parents[1] / "metadata"


@dataclass(frozen=True)
class Context:
    baud_rates: List[int]
    defaults: SerialSettings
    profiles: Dict[str, SerialSettings]
    config_path: Path

    @classmethod
    def load(cls, config_dir: Optional[str | Path] = None) -> "Context":
        """
        Load the settings catalog (baud rates, defaults, profiles).

        `config_dir` defaults to the catalog shipped with the package.
        """
        config_dir = Path(config_dir) if config_dir is not None else default_config_dir()

        loader = ConfigLoader(config_dir)
        try:
            loader.load_all()
        except SettingsError as e:
            raise SettingsError(
                "Invalid serial settings in configuration.",
                hint=e.message,
                details={"config_path": str(loader.path), **e.details},
            ) from None
        except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
            raise SettingsError(
                "Failed to load serial settings configuration.",
                hint=str(e),
                details={"config_path": str(loader.path)},
            ) from None

        return cls(
            baud_rates=list(loader.baud_rates),
            defaults=loader.defaults,
            profiles=dict(loader.profiles),
            config_path=loader.path,
        )

    def profile_names(self) -> List[str]:
        return sorted(self.profiles.keys())

    def settings_for(
        self,
        profile: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> SerialSettings:
        """Resolve a profile (or the defaults) and apply explicit overrides."""
        if profile is None:
            base = self.defaults
        else:
            base = self.profiles.get(profile)
            if base is None:
                raise SettingsError(
                    f"Unknown settings profile '{profile}'.",
                    hint=f"Known profiles: {', '.join(self.profile_names()) or '(none)'}",
                )

        return base.merged({k: v for k, v in (overrides or {}).items() if v is not None})
