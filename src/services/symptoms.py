"""
Service module for symptom logging and analysis.

Symptoms are stored twice: embedded in the owning cycle and in a flat
per-user collection ordered by event date. Pain-related symptoms also feed
the pain pattern model as a follow-up that never fails the log itself.

Typical usage:
    log_symptom(store, user_id, "cramps", 6)
    analysis = analyze_symptoms(store, user_id)
    print(analysis["symptoms_by_type"]["cramps"]["average_intensity"])
"""
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.models.cycle import Cycle, SymptomEntry
from src.services.constants import (
    ANALYSIS_CYCLE_LIMIT,
    ANALYSIS_SYMPTOM_LIMIT,
    MAX_TRACKED_CYCLE_DAY,
)
from src.services.exceptions import (
    InvalidArgumentError,
    NotFoundError,
    PreconditionFailedError,
)
from src.services.pain_model import update_pain_patterns
from src.services.record_store import RecordStore, new_id
from src.services.utils import (
    calculate_cycle_day,
    day_key,
    ensure_utc,
    round_half_up,
    to_iso,
    utc_now,
)
from src.utils.logging import logger

def validate_symptom(symptom_type: Optional[str], intensity: Any) -> int:
    """
    Check a symptom type and intensity.

    Returns:
        Intensity as int

    Raises:
        InvalidArgumentError: If the type is missing or intensity is not 1-10
    """
    try:
        value = int(intensity)
    except (TypeError, ValueError):
        value = None
    if not symptom_type or value is None or not 1 <= value <= 10:
        raise InvalidArgumentError("Symptom type and intensity (1-10) are required")
    return value

def log_symptom(
    store: RecordStore,
    user_id: str,
    symptom_type: str,
    intensity: int,
    date: Optional[datetime] = None,
    notes: str = "",
    cycle_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Record a symptom against a cycle.

    Args:
        store: Record store
        user_id: Caller identity
        symptom_type: Symptom type, e.g. "cramps"
        intensity: Intensity 1-10
        date: When the symptom occurred, defaults to now
        notes: Free-text notes
        cycle_id: Owning cycle, defaults to the active cycle

    Returns:
        Dictionary with symptom_id

    Raises:
        InvalidArgumentError: If type or intensity are invalid
        NotFoundError: If the profile or cycle is missing
        PreconditionFailedError: If no cycle is given and none is active
    """
    intensity = validate_symptom(symptom_type, intensity)

    target_cycle_id = cycle_id
    if not target_cycle_id:
        profile = store.get_user_profile(user_id)
        if profile is None:
            raise NotFoundError("User profile not found")
        target_cycle_id = profile.current_cycle_id
        if not target_cycle_id:
            raise PreconditionFailedError("No active cycle found")

    if store.get_cycle(user_id, target_cycle_id) is None:
        raise NotFoundError("Cycle not found")

    symptom = SymptomEntry(
        symptom_id=new_id(),
        type=symptom_type,
        intensity=intensity,
        date=ensure_utc(date or utc_now()),
        notes=notes or "",
        cycle_id=target_cycle_id,
        created_at=utc_now()
    )

    store.append_cycle_symptom(user_id, target_cycle_id, symptom)
    store.create_symptom(user_id, symptom)

    logger.info("Symptom logged", extra={
        "user_id": user_id,
        "cycle_id": target_cycle_id,
        "symptom_type": symptom_type,
        "intensity": intensity
    })

    update_pain_patterns(store, user_id, symptom_type, intensity, symptom.date)

    return {"symptom_id": symptom.symptom_id}

def get_symptom_history(
    store: RecordStore,
    user_id: str,
    symptom_type: Optional[str] = None,
    limit: int = 50,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Get the user's symptoms, newest first.

    Args:
        store: Record store
        user_id: Caller identity
        symptom_type: Optional type filter
        limit: Maximum number of symptoms
        start_date: Optional inclusive lower date bound
        end_date: Optional inclusive upper date bound

    Returns:
        Dictionary with symptoms
    """
    symptoms = store.query_symptoms(
        user_id,
        symptom_type=symptom_type,
        start_date=start_date,
        end_date=end_date,
        limit=limit
    )
    return {
        "symptoms": [
            {
                "id": s.symptom_id,
                "type": s.type,
                "intensity": s.intensity,
                "date": to_iso(s.date),
                "notes": s.notes,
                "cycle_id": s.cycle_id
            }
            for s in symptoms
        ]
    }

def _average(total: float, count: int) -> float:
    return round_half_up(total / count, 1)

def summarize_by_type(symptoms: List[SymptomEntry]) -> Dict[str, Dict[str, Any]]:
    """
    Count, share and mean intensity per symptom type.

    Returns:
        {type: {"count", "percentage", "average_intensity"}}
    """
    counts: Dict[str, int] = defaultdict(int)
    totals: Dict[str, int] = defaultdict(int)
    for symptom in symptoms:
        counts[symptom.type] += 1
        totals[symptom.type] += symptom.intensity

    return {
        symptom_type: {
            "count": count,
            "percentage": round_half_up(count / len(symptoms) * 100),
            "average_intensity": _average(totals[symptom_type], count)
        }
        for symptom_type, count in counts.items()
    }

def summarize_by_cycle_day(
    symptoms: List[SymptomEntry],
    cycles: List[Cycle]
) -> Dict[str, Dict[str, Any]]:
    """
    Count and mean intensity per cycle day, with a per-type breakdown.

    The day is counted from the owning cycle's start. Symptoms without a
    known cycle, or past the tracked range, are left out.

    Returns:
        {"dayN": {"count", "average_intensity", "by_type": {type: {...}}}}
    """
    cycle_starts = {cycle.cycle_id: cycle.start_date for cycle in cycles}
    days: Dict[str, Dict[str, Any]] = {}

    for symptom in symptoms:
        cycle_start = cycle_starts.get(symptom.cycle_id)
        if cycle_start is None:
            continue

        cycle_day = calculate_cycle_day(cycle_start, symptom.date)
        if cycle_day > MAX_TRACKED_CYCLE_DAY:
            continue

        day = days.setdefault(day_key(cycle_day), {
            "count": 0,
            "total_intensity": 0,
            "by_type": defaultdict(lambda: {"count": 0, "total_intensity": 0})
        })
        day["count"] += 1
        day["total_intensity"] += symptom.intensity
        day["by_type"][symptom.type]["count"] += 1
        day["by_type"][symptom.type]["total_intensity"] += symptom.intensity

    return {
        key: {
            "count": data["count"],
            "average_intensity": _average(data["total_intensity"], data["count"]),
            "by_type": {
                symptom_type: {
                    "count": type_data["count"],
                    "average_intensity": _average(
                        type_data["total_intensity"], type_data["count"]
                    )
                }
                for symptom_type, type_data in data["by_type"].items()
            }
        }
        for key, data in days.items()
    }

def analyze_symptoms(store: RecordStore, user_id: str) -> Dict[str, Any]:
    """
    Break down the user's recent symptoms by type and by cycle day.

    Reads the ANALYSIS_SYMPTOM_LIMIT most recent symptoms and the
    ANALYSIS_CYCLE_LIMIT most recent cycles; nothing is written.

    Args:
        store: Record store
        user_id: Caller identity

    Returns:
        Dictionary containing:
        - total_symptoms: number of symptoms analysed
        - symptoms_by_type: see summarize_by_type
        - symptoms_by_day: see summarize_by_cycle_day
    """
    symptoms = store.query_symptoms(user_id, limit=ANALYSIS_SYMPTOM_LIMIT)
    cycles = store.query_cycles(user_id, limit=ANALYSIS_CYCLE_LIMIT)

    logger.debug("Analyzing symptoms", extra={
        "user_id": user_id,
        "symptom_count": len(symptoms),
        "cycle_count": len(cycles)
    })

    return {
        "total_symptoms": len(symptoms),
        "symptoms_by_type": summarize_by_type(symptoms),
        "symptoms_by_day": summarize_by_cycle_day(symptoms, cycles)
    }
