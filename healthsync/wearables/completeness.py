"""Completeness scorer for a synced dataset.

Scores how complete a user's data is for the synced range, 0–100:

    - Core metrics present out of 9   (weight: 50)
    - Days covered, capped at 90      (weight: 20)
    - Extra (non-core) metrics, ≤ 30  (weight: 30)

Weights, caps and tier thresholds come from completeness_config.yaml.
GOLD and SILVER additionally require core_complete (7+ of the 9 core metrics).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from healthsync.wearables.base import CompletenessResult, CompletenessTier, DateRange
from healthsync.wearables.config_loader import (
    CompletenessConfig,
    TierThresholds,
    get_completeness_config,
)
from healthsync.wearables.metrics import CORE_METRICS, normalize_metric_key

logger = logging.getLogger("healthsync.wearables.completeness")

_CORE_KEYS: frozenset[str] = frozenset(normalize_metric_key(m) for m in CORE_METRICS)


def tier_for(
    score: int,
    core_complete: bool,
    tiers: TierThresholds | None = None,
) -> CompletenessTier:
    """Map a score and the core gate onto a tier.

    Monotone in score for a fixed core_complete.  Never GOLD or SILVER
    without core_complete.

    Args:
        score:         0–100 completeness score.
        core_complete: Whether the core-metric gate is met.
        tiers:         Thresholds; the process default config when omitted.
    """
    thresholds = tiers or get_completeness_config().tiers
    if core_complete and score >= thresholds.gold:
        return CompletenessTier.GOLD
    if core_complete and score >= thresholds.silver:
        return CompletenessTier.SILVER
    if score >= thresholds.bronze:
        return CompletenessTier.BRONZE
    return CompletenessTier.NONE


class CompletenessScorer:
    """Compute a CompletenessResult from the set of metrics present.

    Usage::

        scorer = CompletenessScorer()
        result = scorer.score(
            metrics_present={"StepCount", "HeartRate", ...},
            start=datetime(2025, 11, 25),
            end=datetime(2026, 2, 23),
            days_covered=90,
            record_count=48213,
        )
        print(result.score, result.tier)
    """

    def __init__(self, config: CompletenessConfig | None = None) -> None:
        self._config = config or get_completeness_config()

    @property
    def config(self) -> CompletenessConfig:
        return self._config

    def score(
        self,
        metrics_present: Iterable[str],
        start: datetime,
        end: datetime,
        days_covered: int | None = None,
        record_count: int = 0,
    ) -> CompletenessResult:
        """Score a dataset.

        Args:
            metrics_present: Metric identifiers (raw or normalized) with data.
            start:           Start of the synced range.
            end:             End of the synced range.
            days_covered:    Distinct days holding data.  When omitted, the
                             number of calendar days from start to end.
            record_count:    Raw samples in the range; passed through.

        Returns:
            CompletenessResult with score, tier and core_complete.
        """
        cfg = self._config
        present = {normalize_metric_key(m) for m in metrics_present}
        core = len(present & _CORE_KEYS)
        extras = len(present) - core

        if days_covered is None:
            days_covered = DateRange(start, end).calendar_days
        days_covered = max(int(days_covered), 0)

        core_score = core / len(_CORE_KEYS) * cfg.weights.core
        days_score = min(days_covered, cfg.days_cap) / cfg.days_cap * cfg.weights.days
        extra_score = min(extras, cfg.extras_cap) / cfg.extras_cap * cfg.weights.extras

        final_score = int(round(core_score + days_score + extra_score))
        final_score = max(0, min(100, final_score))

        core_complete = core >= cfg.core_min_present
        tier = tier_for(final_score, core_complete, cfg.tiers)

        logger.debug(
            "Completeness %d (%s): core=%d/%d (%.1f) days=%d (%.1f) extras=%d (%.1f)",
            final_score, tier.value,
            core, len(_CORE_KEYS), core_score,
            days_covered, days_score,
            extras, extra_score,
        )

        return CompletenessResult(
            score=final_score,
            tier=tier,
            core_complete=core_complete,
            days_covered=days_covered,
            record_count=record_count,
        )
