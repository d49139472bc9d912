"""TOML settings, profile overlay and value checks."""

import pytest

from predamm.amm.fixed_point import SCALE
from predamm.config import get_settings, load_config
from predamm.config.settings import Settings
from predamm.engine import EngineConfig


@pytest.fixture
def config_dir(tmp_path):
    (tmp_path / "default.toml").write_text(
        "[engine]\nplatform_fee_bps = 100\nmin_initial_liquidity = 50\n\n[logging]\nlevel = \"info\"\n"
    )
    (tmp_path / "dev.toml").write_text("[engine]\nplatform_fee_bps = 0\n")
    return tmp_path


def test_defaults_without_config(tmp_path):
    assert load_config(config_dir=tmp_path) == {}
    s = get_settings(config_dir=tmp_path)
    assert s.platform_fee_bps == 200
    assert s.min_initial_liquidity == 100 * SCALE
    assert s.fee_collector == "treasury"


def test_profile_overlay(config_dir):
    base = get_settings(config_dir=config_dir)
    assert base.platform_fee_bps == 100
    assert base.logging_level == "INFO"
    dev = get_settings("dev", config_dir)
    assert dev.platform_fee_bps == 0
    assert dev.min_initial_liquidity == 50 * SCALE
    assert get_settings("missing", config_dir).platform_fee_bps == 100


def test_profile_from_environment(config_dir, monkeypatch):
    monkeypatch.setenv("PREDAMM_PROFILE", "dev")
    assert get_settings(config_dir=config_dir).platform_fee_bps == 0


def test_engine_config_from_settings(config_dir):
    cfg = EngineConfig.from_settings(get_settings(config_dir=config_dir))
    assert cfg.platform_fee_bps == 100
    assert cfg.swap_fee_bps == 30
    assert cfg.min_initial_liquidity == 50 * SCALE


def test_rejects_bad_values():
    with pytest.raises(ValueError):
        Settings.from_dict({"engine": {"platform_fee_bps": 10_000}})
    with pytest.raises(ValueError):
        Settings.from_dict({"engine": {"min_duration_sec": 10, "max_duration_sec": 5}})
    with pytest.raises(ValueError):
        Settings(markets={})
