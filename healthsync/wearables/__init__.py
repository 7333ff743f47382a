"""Biometric sample ingestion, daily aggregation and completeness scoring.

Subpackages:
    adapters/  - Sample sources (Apple Health export, in-memory)

Core modules:
    base          - SampleSource ABC and canonical data models
    metrics       - HealthKit metric catalog (core / additive / sleep)
    aggregator    - Fold raw samples into daily summaries
    completeness  - Completeness score and attestation tier
    manifest      - Manifest builder and the uploaded payload document
    config_loader - Load/validate/hot-reload completeness_config.yaml
"""

from healthsync.wearables.base import (
    CompletenessResult,
    CompletenessTier,
    DailySummary,
    DateRange,
    RawSample,
    SampleSource,
    SleepStage,
    SleepSummary,
)
from healthsync.wearables.config_loader import CompletenessConfig, get_completeness_config

__all__ = [
    "SampleSource",
    "RawSample",
    "DateRange",
    "DailySummary",
    "SleepStage",
    "SleepSummary",
    "CompletenessResult",
    "CompletenessTier",
    "CompletenessConfig",
    "get_completeness_config",
]
