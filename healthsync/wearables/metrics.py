"""HealthKit metric catalog.

Maps HealthKit type identifiers onto the semantics the aggregator and scorer
need: which metrics are core, which are summed across a day (additive) and
which are reduced to avg/min/max (sampled), and how metric keys are written
in manifests and daily summary documents.
"""

from __future__ import annotations

# HKQuantityTypeIdentifier / HKCategoryTypeIdentifier prefixes
_HK_QUANTITY_PREFIX = "HKQuantityTypeIdentifier"
_HK_CATEGORY_PREFIX = "HKCategoryTypeIdentifier"
_HK_WORKOUT_TYPE = "HKWorkoutTypeIdentifier"

# Core metrics (required for completeness)
HK_STEP_COUNT = "HKQuantityTypeIdentifierStepCount"
HK_HEART_RATE = "HKQuantityTypeIdentifierHeartRate"
HK_HRV = "HKQuantityTypeIdentifierHeartRateVariabilitySDNN"
HK_RESTING_HR = "HKQuantityTypeIdentifierRestingHeartRate"
HK_SLEEP_ANALYSIS = "HKCategoryTypeIdentifierSleepAnalysis"
HK_ACTIVE_ENERGY = "HKQuantityTypeIdentifierActiveEnergyBurned"
HK_EXERCISE_TIME = "HKQuantityTypeIdentifierAppleExerciseTime"
HK_VO2_MAX = "HKQuantityTypeIdentifierVO2Max"
HK_RESPIRATORY_RATE = "HKQuantityTypeIdentifierRespiratoryRate"

# Body measurements
HK_BODY_MASS = "HKQuantityTypeIdentifierBodyMass"
HK_BODY_FAT = "HKQuantityTypeIdentifierBodyFatPercentage"
HK_LEAN_BODY_MASS = "HKQuantityTypeIdentifierLeanBodyMass"
HK_HEIGHT = "HKQuantityTypeIdentifierHeight"
HK_BMI = "HKQuantityTypeIdentifierBodyMassIndex"
HK_WAIST = "HKQuantityTypeIdentifierWaistCircumference"

# Activity
HK_BASAL_ENERGY = "HKQuantityTypeIdentifierBasalEnergyBurned"
HK_DISTANCE_WALKING = "HKQuantityTypeIdentifierDistanceWalkingRunning"
HK_DISTANCE_CYCLING = "HKQuantityTypeIdentifierDistanceCycling"
HK_DISTANCE_SWIMMING = "HKQuantityTypeIdentifierDistanceSwimming"
HK_FLIGHTS = "HKQuantityTypeIdentifierFlightsClimbed"
HK_STAND_TIME = "HKQuantityTypeIdentifierAppleStandTime"
HK_MOVE_TIME = "HKQuantityTypeIdentifierAppleMoveTime"

# Vitals
HK_BP_SYSTOLIC = "HKQuantityTypeIdentifierBloodPressureSystolic"
HK_BP_DIASTOLIC = "HKQuantityTypeIdentifierBloodPressureDiastolic"
HK_SPO2 = "HKQuantityTypeIdentifierOxygenSaturation"
HK_BODY_TEMP = "HKQuantityTypeIdentifierBodyTemperature"
HK_SKIN_TEMP = "HKQuantityTypeIdentifierAppleSleepingWristTemperature"

# Nutrition
HK_DIETARY_ENERGY = "HKQuantityTypeIdentifierDietaryEnergyConsumed"
HK_DIETARY_PROTEIN = "HKQuantityTypeIdentifierDietaryProtein"
HK_DIETARY_CARBS = "HKQuantityTypeIdentifierDietaryCarbohydrates"
HK_DIETARY_FAT = "HKQuantityTypeIdentifierDietaryFatTotal"
HK_DIETARY_FIBER = "HKQuantityTypeIdentifierDietaryFiber"
HK_DIETARY_SUGAR = "HKQuantityTypeIdentifierDietarySugar"
HK_DIETARY_WATER = "HKQuantityTypeIdentifierDietaryWater"
HK_DIETARY_CAFFEINE = "HKQuantityTypeIdentifierDietaryCaffeine"

# Mindfulness / workouts
HK_MINDFUL = "HKCategoryTypeIdentifierMindfulSession"
HK_WORKOUT = _HK_WORKOUT_TYPE

ALL_METRICS: tuple[str, ...] = (
    HK_STEP_COUNT, HK_HEART_RATE, HK_HRV, HK_RESTING_HR, HK_SLEEP_ANALYSIS,
    HK_ACTIVE_ENERGY, HK_EXERCISE_TIME, HK_VO2_MAX, HK_RESPIRATORY_RATE,
    HK_BODY_MASS, HK_BODY_FAT, HK_LEAN_BODY_MASS, HK_HEIGHT, HK_BMI, HK_WAIST,
    HK_BASAL_ENERGY, HK_DISTANCE_WALKING, HK_DISTANCE_CYCLING, HK_DISTANCE_SWIMMING,
    HK_FLIGHTS, HK_STAND_TIME, HK_MOVE_TIME,
    HK_BP_SYSTOLIC, HK_BP_DIASTOLIC, HK_SPO2, HK_BODY_TEMP, HK_SKIN_TEMP,
    HK_DIETARY_ENERGY, HK_DIETARY_PROTEIN, HK_DIETARY_CARBS, HK_DIETARY_FAT,
    HK_DIETARY_FIBER, HK_DIETARY_SUGAR, HK_DIETARY_WATER, HK_DIETARY_CAFFEINE,
    HK_MINDFUL, HK_WORKOUT,
)

#: The 9 core signal types gating ``core_complete``.
CORE_METRICS: tuple[str, ...] = (
    HK_STEP_COUNT,
    HK_HEART_RATE,
    HK_HRV,
    HK_RESTING_HR,
    HK_ACTIVE_ENERGY,
    HK_EXERCISE_TIME,
    HK_VO2_MAX,
    HK_RESPIRATORY_RATE,
    HK_SLEEP_ANALYSIS,
)

# Summed across a day
_ADDITIVE_METRICS: frozenset[str] = frozenset({
    HK_STEP_COUNT,
    HK_FLIGHTS,
    HK_ACTIVE_ENERGY,
    HK_BASAL_ENERGY,
    HK_EXERCISE_TIME,
    HK_STAND_TIME,
    HK_MOVE_TIME,
    HK_DISTANCE_WALKING,
    HK_DISTANCE_CYCLING,
    HK_DISTANCE_SWIMMING,
    HK_DIETARY_ENERGY,
    HK_DIETARY_PROTEIN,
    HK_DIETARY_CARBS,
    HK_DIETARY_FAT,
    HK_DIETARY_FIBER,
    HK_DIETARY_SUGAR,
    HK_DIETARY_WATER,
    HK_DIETARY_CAFFEINE,
    HK_MINDFUL,
})


def normalize_metric_key(metric_id: str) -> str:
    """Strip the HealthKit prefix so keys match the web app's JSON format.

    'HKQuantityTypeIdentifierStepCount' → 'StepCount',
    'HKWorkoutTypeIdentifier' → 'workout'.  Already-normalized keys pass
    through unchanged.
    """
    if metric_id == _HK_WORKOUT_TYPE:
        return "workout"
    return (
        metric_id
        .replace(_HK_QUANTITY_PREFIX, "")
        .replace(_HK_CATEGORY_PREFIX, "")
        .replace(_HK_WORKOUT_TYPE, "workout")
    )


_CORE_KEYS: frozenset[str] = frozenset(normalize_metric_key(m) for m in CORE_METRICS)
_ADDITIVE_KEYS: frozenset[str] = frozenset(normalize_metric_key(m) for m in _ADDITIVE_METRICS)
_SLEEP_KEY = normalize_metric_key(HK_SLEEP_ANALYSIS)


def is_core_metric(metric_id: str) -> bool:
    return normalize_metric_key(metric_id) in _CORE_KEYS


def is_additive_metric(metric_id: str) -> bool:
    """True for metrics whose daily value is a sum (steps, calories, minutes)."""
    return normalize_metric_key(metric_id) in _ADDITIVE_KEYS


def is_sleep_metric(metric_id: str) -> bool:
    return normalize_metric_key(metric_id) == _SLEEP_KEY


def classify_source(source_tag: str | None) -> str:
    """Bucket a recording source as 'watch', 'phone', or 'other'."""
    tag = (source_tag or "").lower()
    if "watch" in tag:
        return "watch"
    if "iphone" in tag or "phone" in tag:
        return "phone"
    return "other"
