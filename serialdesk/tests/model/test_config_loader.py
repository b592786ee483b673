from __future__ import annotations

from pathlib import Path

import pytest

from serialdesk.core.context import Context, default_config_dir
from serialdesk.core.errors import SettingsError
from serialdesk.model.loader import ConfigLoader
from serialdesk.model.settings import BAUD_RATES, SerialSettings


def _write(tmp_path: Path, text: str) -> Path:
    (tmp_path / "serial.yml").write_text(text, encoding="utf-8")
    return tmp_path


def test_loader_parses_defaults_and_profiles(tmp_path):
    _write(
        tmp_path,
        """
baud_rates: [9600, 115200, 9600]
defaults:
  baud_rate: 9600
  package_timeout_ms: 20
profiles:
  fast:
    baud_rate: 115200
  plain: {}
  empty:
""",
    )
    loader = ConfigLoader(tmp_path)
    loader.load_all()

    assert loader.baud_rates == [9600, 115200]
    assert loader.defaults == SerialSettings(baud_rate=9600, package_timeout_ms=20)
    assert loader.get_profile("fast").baud_rate == 115200
    # profiles inherit from defaults
    assert loader.get_profile("fast").package_timeout_ms == 20
    assert loader.get_profile("plain") == loader.defaults
    assert loader.get_profile("empty") == loader.defaults


def test_loader_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigLoader(tmp_path).load_all()


def test_loader_rejects_bad_baud_rates(tmp_path):
    _write(tmp_path, "baud_rates: [9600, -1]\n")
    with pytest.raises(ValueError):
        ConfigLoader(tmp_path).load_all()


def test_loader_rejects_non_mapping_profile(tmp_path):
    _write(tmp_path, "profiles:\n  broken: [1, 2]\n")
    with pytest.raises(ValueError):
        ConfigLoader(tmp_path).load_all()


def test_loader_empty_file_uses_builtin_defaults(tmp_path):
    _write(tmp_path, "")
    loader = ConfigLoader(tmp_path)
    loader.load_all()
    assert loader.defaults == SerialSettings()
    assert loader.baud_rates == list(BAUD_RATES)
    assert loader.profiles == {}


def test_context_loads_bundled_catalog():
    ctx = Context.load()
    assert ctx.config_path == default_config_dir() / "serial.yml"
    assert 115200 in ctx.baud_rates
    assert "raw" in ctx.profile_names()
    assert ctx.settings_for("raw").package_timeout_ms == 0
    assert ctx.settings_for("legacy-7e1").data_bits == 7


def test_context_settings_for_applies_overrides_and_skips_none():
    ctx = Context.load()
    s = ctx.settings_for(None, {"baud_rate": 9600, "parity": None})
    assert s.baud_rate == 9600
    assert s.parity == ctx.defaults.parity


def test_context_unknown_profile_raises():
    ctx = Context.load()
    with pytest.raises(SettingsError) as ei:
        ctx.settings_for("nope")
    assert "raw" in ei.value.hint


def test_context_wraps_yaml_errors(tmp_path):
    _write(tmp_path, "defaults: [unclosed\n")
    with pytest.raises(SettingsError) as ei:
        Context.load(tmp_path)
    assert ei.value.details["config_path"].endswith("serial.yml")


def test_context_wraps_invalid_settings(tmp_path):
    _write(tmp_path, "defaults:\n  data_bits: 9\n")
    with pytest.raises(SettingsError) as ei:
        Context.load(tmp_path)
    assert ei.value.details["field"] == "data_bits"
