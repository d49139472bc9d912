"""TOML settings: default.toml plus an optional profile overlay, and structlog setup."""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import Any, Callable, Iterator

from predamm.amm.fixed_point import BPS_DENOMINATOR, SCALE

CONFIG_DIR_ENV = "PREDAMM_CONFIG_DIR"
PROFILE_ENV = "PREDAMM_PROFILE"

# Repository-level config/ (next to src/)
_REPO_CONFIG = Path(__file__).resolve().parents[3] / "config"


def _candidate_dirs(config_dir: Path | None) -> Iterator[Path]:
    if config_dir is not None:
        yield Path(config_dir)
        return
    env_dir = os.environ.get(CONFIG_DIR_ENV)
    if env_dir:
        yield Path(env_dir)
    yield Path.cwd() / "config"
    yield _REPO_CONFIG


def resolve_config_dir(config_dir: Path | None = None) -> Path | None:
    """First candidate directory holding a default.toml, or None."""
    for candidate in _candidate_dirs(config_dir):
        if (candidate / "default.toml").is_file():
            return candidate
    return None


def _read(path: Path) -> dict[str, Any]:
    with path.open("rb") as f:
        return tomllib.load(f)


def _overlay(base: dict[str, Any], extra: dict[str, Any]) -> dict[str, Any]:
    """Tables merge key by key; any other value in `extra` replaces the base value."""
    merged = dict(base)
    for key, value in extra.items():
        current = merged.get(key)
        merged[key] = _overlay(current, value) if isinstance(current, dict) and isinstance(value, dict) else value
    return merged


def load_config(profile: str | None = None, config_dir: Path | None = None) -> dict[str, Any]:
    """Raw config dict. An unknown profile is ignored; no config directory yields {}."""
    found = resolve_config_dir(config_dir)
    if found is None:
        return {}
    raw = _read(found / "default.toml")
    profile = profile or os.environ.get(PROFILE_ENV)
    if profile:
        profile_path = found / f"{profile}.toml"
        if profile_path.is_file():
            raw = _overlay(raw, _read(profile_path))
    return raw


def get_settings(profile: str | None = None, config_dir: Path | None = None) -> Settings:
    return Settings.from_dict(load_config(profile, config_dir))


class Settings:
    """
    Typed view over the raw config sections. Token amounts in the files are
    whole units; the accessors below return them as 1e18 fixed point.
    """

    SECTIONS = ("engine", "storage", "api", "logging")

    def __init__(self, **sections: dict[str, Any] | None) -> None:
        unknown = set(sections) - set(self.SECTIONS)
        if unknown:
            raise ValueError(f"unknown config sections: {sorted(unknown)}")
        for name in self.SECTIONS:
            setattr(self, name, dict(sections.get(name) or {}))

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Settings:
        settings = cls(**{name: raw.get(name) for name in cls.SECTIONS})
        settings.check()
        return settings

    def _value(self, section: str, key: str, default: Any, cast: Callable[[Any], Any] = int) -> Any:
        return cast(getattr(self, section).get(key, default))

    def check(self) -> None:
        """Reject economically meaningless values early, naming the offending key."""
        for key in ("platform_fee_bps", "swap_fee_bps"):
            bps = self._value("engine", key, 0)
            if not 0 <= bps < BPS_DENOMINATOR:
                raise ValueError(f"engine.{key} must be in [0, {BPS_DENOMINATOR}), got {bps}")
        if self.min_duration_sec > self.max_duration_sec:
            raise ValueError("engine.min_duration_sec exceeds engine.max_duration_sec")
        if self.price_history_limit < 0:
            raise ValueError("engine.price_history_limit must be non-negative")

    # [engine]
    @property
    def platform_fee_bps(self) -> int:
        return self._value("engine", "platform_fee_bps", 200)

    @property
    def swap_fee_bps(self) -> int:
        return self._value("engine", "swap_fee_bps", 30)

    @property
    def min_duration_sec(self) -> int:
        return self._value("engine", "min_duration_sec", 3600)

    @property
    def max_duration_sec(self) -> int:
        return self._value("engine", "max_duration_sec", 365 * 24 * 3600)

    @property
    def min_initial_liquidity(self) -> int:
        return self._value("engine", "min_initial_liquidity", 100) * SCALE

    @property
    def min_early_resolution_delay_sec(self) -> int:
        return self._value("engine", "min_early_resolution_delay_sec", 3600)

    @property
    def price_history_limit(self) -> int:
        return self._value("engine", "price_history_limit", 100)

    @property
    def fee_collector(self) -> str:
        return self._value("engine", "fee_collector", "treasury", str)

    # [storage]
    @property
    def db_path(self) -> str:
        return self._value("storage", "db_path", "data/predamm.duckdb", str)

    # [api]
    @property
    def api_owner(self) -> str:
        return self._value("api", "owner", "admin", str)

    @property
    def api_faucet_amount(self) -> int:
        """Minted per demo faucet request."""
        return self._value("api", "faucet_amount", 10_000) * SCALE

    # [logging]
    @property
    def logging_level(self) -> str:
        return self._value("logging", "level", "INFO", str).upper()

    @property
    def logging_format(self) -> str:
        return self._value("logging", "format", "console", str)

    @property
    def logging_level_num(self) -> int:
        return logging.getLevelNamesMapping().get(self.logging_level, logging.INFO)


def configure_logging(settings: Settings) -> None:
    """structlog for the engine, stdlib level for uvicorn/duckdb. Call once at entry."""
    import structlog

    level = settings.logging_level_num
    logging.basicConfig(level=level, format="%(message)s")

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if settings.logging_format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.processors.StackInfoRenderer(), structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
