"""
Service module for the per-cycle-day pain pattern model.

The model keeps, per user, one smoothed pain intensity for each cycle day
1..35 (`pain_patterns["day14"]`). Each pain-relevant symptom log applies a
single exponentially weighted update to the slot of the day it falls on.
Forecasts fill the gaps between known slots and report how much data backs
them.

The update is online: results depend on the order and number
of calls. Applying the same update twice moves the slot twice.

Typical usage:
    update_pain_patterns(store, user_id, "cramps", 7, symptom_date)
    forecast = predict_pain(store, user_id)
    print(forecast["high_pain_days"])
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from src.services.constants import (
    HIGH_CONFIDENCE_POINTS,
    HIGH_PAIN_THRESHOLD,
    MAX_PREDICTION_QUALITY,
    MAX_TRACKED_CYCLE_DAY,
    MEDIUM_CONFIDENCE_POINTS,
    MEDIUM_PAIN_THRESHOLD,
    MIN_PREDICTION_QUALITY,
    ML_HIGH_QUALITY,
    ML_MEDIUM_QUALITY,
    NEIGHBOUR_DECAY,
    PAIN_ALPHA,
    PAIN_SYMPTOMS,
    QUALITY_POINTS_DIVISOR,
)
from src.services.exceptions import NotFoundError
from src.services.record_store import RecordStore, retry_on_conflict
from src.services.utils import calculate_cycle_day, day_key, round_half_up
from src.utils.logging import logger

# Learned model: user_id -> {"predictions": {...}, "prediction_quality": float, ...}
PainPredictor = Callable[[str], Dict[str, Any]]

def smooth(current: float, intensity: float, alpha: float = PAIN_ALPHA) -> float:
    """
    Apply one exponential smoothing step.

    Example:
        >>> smooth(0, 10)
        3.0
    """
    return current * (1 - alpha) + intensity * alpha

def is_pain_symptom(symptom_type: str) -> bool:
    """True if the symptom type feeds the pain pattern model."""
    return symptom_type in PAIN_SYMPTOMS

def update_pain_patterns(
    store: RecordStore,
    user_id: str,
    symptom_type: str,
    intensity: int,
    symptom_date: datetime
) -> Optional[float]:
    """
    Fold one symptom observation into the user's pain pattern.

    Runs as background enrichment of a symptom log: it never raises. Symptoms
    that are not pain-related, users without a known period start and days
    past the tracked range are ignored.

    Args:
        store: Record store
        user_id: Caller identity
        symptom_type: Symptom type, e.g. "cramps"
        intensity: Intensity 1-10
        symptom_date: When the symptom occurred

    Returns:
        The new slot value, or None when nothing was updated
    """
    if not is_pain_symptom(symptom_type):
        return None

    def apply_update() -> Optional[float]:
        profile = store.get_user_profile(user_id)
        if profile is None or profile.last_period_start_date is None:
            return None

        cycle_day = calculate_cycle_day(profile.last_period_start_date, symptom_date)
        if cycle_day > MAX_TRACKED_CYCLE_DAY:
            logger.debug("Symptom outside tracked cycle days", extra={
                "user_id": user_id,
                "cycle_day": cycle_day
            })
            return None

        key = day_key(cycle_day)
        new_value = smooth(profile.pain_patterns.get(key) or 0, intensity)
        store.set_user_profile(
            user_id,
            {f"pain_patterns.{key}": new_value},
            expected_version=profile.version
        )
        logger.info("Pain pattern updated", extra={
            "user_id": user_id,
            "cycle_day": cycle_day,
            "value": new_value
        })
        return new_value

    try:
        return retry_on_conflict(apply_update)
    except Exception as e:
        logger.exception("Error updating pain patterns", extra={
            "user_id": user_id,
            "error": str(e),
            "error_type": e.__class__.__name__
        })
        return None

def _known(pain_patterns: Dict[str, float], day: int) -> Optional[float]:
    # Zero and missing slots both count as unknown
    value = pain_patterns.get(day_key(day))
    return value if value else None

def forecast_day(pain_patterns: Dict[str, float], day: int) -> int:
    """
    Forecast pain for one cycle day.

    Uses the smoothed slot when present, else the mean of both neighbours,
    else 90% of the one known neighbour, else 0.
    """
    value = _known(pain_patterns, day)
    if value is not None:
        return round_half_up(value)

    previous = _known(pain_patterns, day - 1)
    following = _known(pain_patterns, day + 1)
    if previous is not None and following is not None:
        return round_half_up((previous + following) / 2)
    if previous is not None:
        return round_half_up(previous * NEIGHBOUR_DECAY)
    if following is not None:
        return round_half_up(following * NEIGHBOUR_DECAY)
    return 0

def calculate_prediction_quality(known_points: int) -> float:
    """Numeric quality on a 1-6 scale: one point per five known slots."""
    return min(
        MAX_PREDICTION_QUALITY,
        max(MIN_PREDICTION_QUALITY, known_points / QUALITY_POINTS_DIVISOR)
    )

def calculate_confidence(known_points: int) -> str:
    """
    Confidence label from the number of known slots.

    Independent of calculate_prediction_quality: 11 known points give a
    quality of 2.2 but "medium" confidence.
    """
    if known_points > HIGH_CONFIDENCE_POINTS:
        return "high"
    if known_points > MEDIUM_CONFIDENCE_POINTS:
        return "medium"
    return "low"

def confidence_from_model_quality(quality: float) -> str:
    """Confidence label for a learned model's own quality score."""
    if quality >= ML_HIGH_QUALITY:
        return "high"
    if quality >= ML_MEDIUM_QUALITY:
        return "medium"
    return "low"

def forecast_pain(
    pain_patterns: Dict[str, float],
    average_cycle_length: int
) -> Dict[str, Any]:
    """
    Build a 35-day pain forecast from the smoothed pattern.

    Args:
        pain_patterns: Slots keyed "day1".."day35"
        average_cycle_length: User's rolling average cycle length

    Returns:
        Dictionary containing:
        - predictions: {"dayN": int} for N in 1..35
        - high_pain_days: days forecast at 7 or above
        - medium_pain_days: days forecast at 4 to 6
        - prediction_quality: 1-6 scale
        - predicted_cycle_length: average_cycle_length
        - confidence: "low" | "medium" | "high"
        - model_type: "simple"

    Example:
        >>> forecast = forecast_pain({"day14": 6, "day16": 8}, 28)
        >>> forecast["predictions"]["day15"]
        7
    """
    predictions: Dict[str, int] = {}
    high_pain_days: List[int] = []
    medium_pain_days: List[int] = []

    for day in range(1, MAX_TRACKED_CYCLE_DAY + 1):
        pain_level = forecast_day(pain_patterns, day)
        predictions[day_key(day)] = pain_level

        if pain_level >= HIGH_PAIN_THRESHOLD:
            high_pain_days.append(day)
        elif pain_level >= MEDIUM_PAIN_THRESHOLD:
            medium_pain_days.append(day)

    known_points = len(pain_patterns)

    return {
        "predictions": predictions,
        "high_pain_days": high_pain_days,
        "medium_pain_days": medium_pain_days,
        "prediction_quality": calculate_prediction_quality(known_points),
        "predicted_cycle_length": average_cycle_length,
        "confidence": calculate_confidence(known_points),
        "model_type": "simple"
    }

def predict_pain(
    store: RecordStore,
    user_id: str,
    use_ml: bool = False,
    ml_predictor: Optional[PainPredictor] = None
) -> Dict[str, Any]:
    """
    Forecast the user's pain for the next cycle.

    Args:
        store: Record store
        user_id: Caller identity
        use_ml: Prefer the learned model when one is configured
        ml_predictor: Learned model returning per-day predictions and a
            prediction_quality score

    Returns:
        Forecast dictionary (see forecast_pain)

    Raises:
        NotFoundError: If the user has no profile
    """
    if use_ml and ml_predictor is not None:
        result = dict(ml_predictor(user_id))
        result["model_type"] = "random_forest"
        result["confidence"] = confidence_from_model_quality(
            result.get("prediction_quality", 0)
        )
        return result

    if use_ml:
        logger.info("No learned pain model configured, using simple forecast", extra={
            "user_id": user_id
        })

    profile = store.get_user_profile(user_id)
    if profile is None:
        raise NotFoundError("User profile not found")

    return forecast_pain(profile.pain_patterns, profile.average_cycle_length)
