"""Load, validate, and hot-reload the completeness scoring configuration.

The config lives in ``completeness_config.yaml`` alongside this module.  It is
loaded once on first use and cached.  Call ``reload_completeness_config()`` to
re-read from disk without a restart.  Components accept an explicit
``CompletenessConfig`` so tests never depend on the process default.

Usage::

    from healthsync.wearables.config_loader import get_completeness_config

    config = get_completeness_config()
    config.weights.core          # 50.0
    config.tiers.gold            # 80
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger("healthsync.wearables.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "completeness_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class ScoreWeights:
    """Maximum points contributed by each component."""

    core: float = 50.0
    days: float = 20.0
    extras: float = 30.0

    @property
    def total(self) -> float:
        return self.core + self.days + self.extras


@dataclass
class TierThresholds:
    """Minimum score for each tier.  GOLD/SILVER also need core_complete."""

    gold: int = 80
    silver: int = 60
    bronze: int = 40


@dataclass
class CompletenessConfig:
    """Complete, validated scoring configuration.

    Attributes:
        version:           Config schema version string.
        weights:           Points per component.
        days_cap:          Days beyond this contribute nothing.
        extras_cap:        Extra metrics beyond this contribute nothing.
        core_min_present:  Core metrics needed for core_complete.
        tiers:             Tier score thresholds.
    """

    version: str = "1.0"
    weights: ScoreWeights = field(default_factory=ScoreWeights)
    days_cap: int = 90
    extras_cap: int = 30
    core_min_present: int = 7
    tiers: TierThresholds = field(default_factory=TierThresholds)
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when completeness_config.yaml fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed.
    """
    if not path.exists():
        raise FileNotFoundError(f"Completeness config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at the top level")
    return data


def _validate_and_build(raw: dict) -> CompletenessConfig:
    """Validate the raw YAML dict and construct a CompletenessConfig.

    Applies defaults for missing sections and collects every problem before
    raising, so one edit can fix them all.

    Raises:
        ConfigValidationError: If any value is missing or out of range.
    """
    errors: list[str] = []

    def _number(section: dict, key: str, default: float, where: str) -> float:
        value = section.get(key, default)
        try:
            number = float(value)
        except (TypeError, ValueError):
            errors.append(f"{where}.{key} must be a number, got {value!r}")
            return default
        if number < 0:
            errors.append(f"{where}.{key} = {number} must not be negative")
        return number

    version = str(raw.get("version", "1.0"))

    # ── Weights ──
    w_raw = raw.get("weights") or {}
    weights = ScoreWeights(
        core=_number(w_raw, "core", 50.0, "weights"),
        days=_number(w_raw, "days", 20.0, "weights"),
        extras=_number(w_raw, "extras", 30.0, "weights"),
    )
    if weights.total <= 0:
        errors.append("weights must sum to a positive number")

    # ── Caps ──
    caps_raw = raw.get("caps") or {}
    days_cap = int(_number(caps_raw, "days", 90, "caps"))
    extras_cap = int(_number(caps_raw, "extras", 30, "caps"))
    if days_cap <= 0:
        errors.append("caps.days must be positive")
    if extras_cap <= 0:
        errors.append("caps.extras must be positive")

    # ── Core gate ──
    core_raw = raw.get("core") or {}
    core_min_present = int(_number(core_raw, "min_present", 7, "core"))
    if not (0 < core_min_present <= 9):
        errors.append(f"core.min_present = {core_min_present} is out of range [1, 9]")

    # ── Tiers ──
    tiers_raw = raw.get("tiers") or {}
    tiers = TierThresholds(
        gold=int(_number(tiers_raw, "gold", 80, "tiers")),
        silver=int(_number(tiers_raw, "silver", 60, "tiers")),
        bronze=int(_number(tiers_raw, "bronze", 40, "tiers")),
    )
    if not (tiers.bronze <= tiers.silver <= tiers.gold <= 100):
        errors.append(
            f"tiers must satisfy bronze <= silver <= gold <= 100, "
            f"got {tiers.bronze}/{tiers.silver}/{tiers.gold}"
        )

    if abs(weights.total - 100.0) > 0.5:
        logger.warning(
            "Completeness weights sum to %.1f (expected 100). Scores are clamped to [0, 100].",
            weights.total,
        )

    if errors:
        raise ConfigValidationError(
            f"completeness_config.yaml has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return CompletenessConfig(
        version=version,
        weights=weights,
        days_cap=days_cap,
        extras_cap=extras_cap,
        core_min_present=core_min_present,
        tiers=tiers,
        _raw=raw,
    )


def load_completeness_config(path: Path | None = None) -> CompletenessConfig:
    """Load and validate the completeness config from disk.

    Args:
        path: Override path to YAML. Uses the bundled completeness_config.yaml by default.
    """
    target = path or _CONFIG_PATH
    raw = _load_yaml(target)
    config = _validate_and_build(raw)
    logger.info("Loaded completeness config v%s from %s", config.version, target)
    return config


# ---------------------------------------------------------------------------
# Process default with hot-reload support
# ---------------------------------------------------------------------------

_config: CompletenessConfig | None = None
_config_lock = threading.Lock()


def get_completeness_config() -> CompletenessConfig:
    """Return the process-default CompletenessConfig, loading it on first call.

    Thread-safe.  Use ``reload_completeness_config()`` to refresh after YAML changes.
    """
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_completeness_config()
    return _config


def reload_completeness_config(path: Path | None = None) -> CompletenessConfig:
    """Reload the config from disk and replace the process default.

    If validation fails, the old config is retained and the error is re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_completeness_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded completeness config: %s → %s", old_version, new_config.version)
    return new_config
