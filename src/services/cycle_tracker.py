"""
Service module for the per-user cycle state machine.

A user is Idle (no open cycle) or Active(cycle_id). Starting a cycle makes
the user Active and fixes the cycle's predicted end date; ending it records
the observed duration, returns the user to Idle and recomputes the rolling
average cycle length from the most recent closed cycles.

Typical usage:
    started = start_cycle(store, user_id, start_date)
    stats = get_current_cycle_stats(store, user_id)
    ended = end_cycle(store, user_id)
    print(ended["new_average_cycle_length"])
"""
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.models.cycle import Cycle, SymptomEntry
from src.models.phase import CyclePhaseType
from src.models.user import DEFAULT_CYCLE_LENGTH, Active, UserCycleProfile
from src.services.constants import (
    FOLLICULAR_LAST_DAY,
    OVULATORY_FIRST_DAY,
    OVULATORY_LAST_DAY,
    PHASE_DESCRIPTIONS,
    ROLLING_AVERAGE_WINDOW,
)
from src.services.exceptions import NotFoundError, PreconditionFailedError
from src.services.record_store import RecordStore, new_id, retry_on_conflict
from src.services.utils import (
    SECONDS_PER_DAY,
    calculate_cycle_day,
    days_between_ceil,
    ensure_utc,
    round_half_up,
    to_iso,
    utc_now,
)
from src.utils.logging import logger

# Evaluated top-down, first match wins. Day 14 is therefore follicular and
# ovulatory covers days 15-16 once the period is over.
PhaseRule = Tuple[Callable[[int, int], bool], CyclePhaseType]
PHASE_RULES: List[PhaseRule] = [
    (lambda day, period_length: day <= period_length, CyclePhaseType.MENSTRUAL),
    (lambda day, period_length: day <= FOLLICULAR_LAST_DAY, CyclePhaseType.FOLLICULAR),
    (
        lambda day, period_length: OVULATORY_FIRST_DAY <= day <= OVULATORY_LAST_DAY,
        CyclePhaseType.OVULATORY
    ),
]

def classify_phase(cycle_day: int, average_period_length: int) -> CyclePhaseType:
    """
    Map a cycle day to its phase.

    Args:
        cycle_day: Current day in the cycle (1-based)
        average_period_length: User's average period length in days

    Returns:
        Phase type; luteal when no earlier rule matches

    Example:
        >>> classify_phase(15, 5)
        <CyclePhaseType.OVULATORY: 'ovulatory'>
    """
    for predicate, phase in PHASE_RULES:
        if predicate(cycle_day, average_period_length):
            return phase
    return CyclePhaseType.LUTEAL

def calculate_average_cycle_length(cycles: List[Cycle]) -> int:
    """
    Rolling average over the most recent closed cycles.

    Args:
        cycles: Cycles in any order

    Returns:
        Half-up rounded mean duration of the ROLLING_AVERAGE_WINDOW most
        recently started cycles with a positive duration, or the default
        length when there are none

    Example:
        >>> # durations 28, 30, 27, 29, 28, 26
        >>> calculate_average_cycle_length(closed_cycles)
        28
    """
    closed = [c for c in cycles if c.duration_days and c.duration_days > 0]
    closed.sort(key=lambda c: ensure_utc(c.start_date), reverse=True)
    recent = closed[:ROLLING_AVERAGE_WINDOW]

    if not recent:
        return DEFAULT_CYCLE_LENGTH

    return round_half_up(sum(c.duration_days for c in recent) / len(recent))

def _require_profile(store: RecordStore, user_id: str) -> UserCycleProfile:
    profile = store.get_user_profile(user_id)
    if profile is None:
        raise NotFoundError("User profile not found")
    return profile

def start_cycle(
    store: RecordStore,
    user_id: str,
    start_date: datetime,
    symptoms: Optional[List[Dict[str, Any]]] = None,
    notes: str = ""
) -> Dict[str, Any]:
    """
    Start a new cycle and make it the user's active cycle.

    Starting while another cycle is active is allowed: the new cycle becomes
    the active one and the previous cycle stays open.

    Args:
        store: Record store
        user_id: Caller identity
        start_date: First day of the period
        symptoms: Optional symptoms ({type, intensity, date?, notes?}) to
            record with the cycle
        notes: Free-text notes

    Returns:
        Dictionary with cycle_id and predicted_end_date (ISO string)

    Raises:
        NotFoundError: If the user has no profile
    """
    start_date = ensure_utc(start_date)
    cycle_id = new_id()

    def apply_start() -> Cycle:
        profile = _require_profile(store, user_id)

        state = profile.cycle_state
        if isinstance(state, Active):
            logger.warning("Starting a cycle while another is active", extra={
                "user_id": user_id,
                "active_cycle_id": state.cycle_id
            })

        now = utc_now()
        cycle = Cycle(
            cycle_id=cycle_id,
            start_date=start_date,
            predicted_end_date=start_date + timedelta(days=profile.average_cycle_length),
            symptoms=[
                SymptomEntry(
                    symptom_id=new_id(),
                    type=symptom["type"],
                    intensity=symptom["intensity"],
                    date=ensure_utc(symptom.get("date") or start_date),
                    notes=symptom.get("notes") or "",
                    cycle_id=cycle_id,
                    created_at=now
                )
                for symptom in (symptoms or [])
            ],
            notes=notes or "",
            created_at=now,
            updated_at=now
        )
        # Same cycle_id on retry, so a repeated put overwrites rather than duplicates
        store.create_cycle(user_id, cycle)
        store.set_user_profile(
            user_id,
            {
                "current_cycle_id": cycle.cycle_id,
                "last_period_start_date": start_date
            },
            expected_version=profile.version
        )
        return cycle

    cycle = retry_on_conflict(apply_start)

    logger.info("Cycle started", extra={
        "user_id": user_id,
        "cycle_id": cycle.cycle_id,
        "predicted_end_date": to_iso(cycle.predicted_end_date)
    })

    return {
        "cycle_id": cycle.cycle_id,
        "predicted_end_date": to_iso(cycle.predicted_end_date)
    }

def end_cycle(
    store: RecordStore,
    user_id: str,
    cycle_id: Optional[str] = None,
    end_date: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Close a cycle and recompute the rolling average cycle length.

    The cycle record is closed first with a conditional write, then the
    profile is settled (average, current cycle) under a version check. A
    cycle that is closed while the profile still points at it is settled
    again on the next call instead of being rejected.

    Args:
        store: Record store
        user_id: Caller identity
        cycle_id: Cycle to close, defaults to the active cycle
        end_date: When the cycle ended, defaults to now

    Returns:
        Dictionary with cycle_length and new_average_cycle_length

    Raises:
        NotFoundError: If the profile or the cycle record is missing
        PreconditionFailedError: If no cycle is given and none is active, or
            the cycle is already closed
    """
    end_date = ensure_utc(end_date or utc_now())
    profile = _require_profile(store, user_id)

    target_cycle_id = cycle_id
    if not target_cycle_id:
        state = profile.cycle_state
        if not isinstance(state, Active):
            raise PreconditionFailedError("No active cycle found")
        target_cycle_id = state.cycle_id

    cycle = store.get_cycle(user_id, target_cycle_id)
    if cycle is None:
        raise NotFoundError("Cycle not found")

    if cycle.is_active:
        duration = days_between_ceil(cycle.start_date, end_date)
        store.close_cycle(user_id, target_cycle_id, end_date, duration)
        closed_cycle = cycle.model_copy(update={
            "end_date": end_date,
            "duration_days": duration
        })
    elif profile.current_cycle_id == target_cycle_id:
        logger.warning("Settling profile for a cycle closed earlier", extra={
            "user_id": user_id,
            "cycle_id": target_cycle_id
        })
        closed_cycle = cycle
    else:
        raise PreconditionFailedError("Cycle already ended")

    average = retry_on_conflict(
        lambda: _settle_closed_cycle(store, user_id, closed_cycle)
    )

    logger.info("Cycle ended", extra={
        "user_id": user_id,
        "cycle_length": closed_cycle.duration_days,
        "new_average_cycle_length": average
    })

    return {
        "cycle_length": closed_cycle.duration_days,
        "new_average_cycle_length": average
    }

def _settle_closed_cycle(store: RecordStore, user_id: str, closed_cycle: Cycle) -> int:
    """Write the new average and release the current cycle if it was closed."""
    profile = _require_profile(store, user_id)

    # Queries may lag the close, so the closed cycle is merged in memory
    history = [
        c for c in store.query_cycles(user_id, closed_only=True)
        if c.cycle_id != closed_cycle.cycle_id
    ]
    average = calculate_average_cycle_length(history + [closed_cycle])

    updates: Dict[str, Any] = {"average_cycle_length": average}
    # Closing an older cycle leaves a newer active cycle in place
    if profile.current_cycle_id in (None, closed_cycle.cycle_id):
        updates["current_cycle_id"] = None
    store.set_user_profile(user_id, updates, expected_version=profile.version)
    return average

def days_until(target: datetime, now: datetime) -> Optional[int]:
    """
    Whole days from now until target, rounded up.

    Returns:
        Day count, or None when target is not in the future
    """
    seconds = (ensure_utc(target) - ensure_utc(now)).total_seconds()
    days = math.ceil(seconds / SECONDS_PER_DAY)
    return days if days > 0 else None

def get_current_cycle_stats(
    store: RecordStore,
    user_id: str,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Report where the user is in the current cycle.

    Args:
        store: Record store
        user_id: Caller identity
        now: Reference time, defaults to now

    Returns:
        Idle: has_cycle False and cycle_info with defaults and last period
        date. Active: has_cycle True, cycle (id, dates, current_day,
        cycle_phase, days_until_next_period) and cycle_info.

    Raises:
        NotFoundError: If the profile is missing, or the active cycle record
            is missing (the dangling reference is cleared first)
    """
    now = ensure_utc(now or utc_now())
    profile = _require_profile(store, user_id)

    state = profile.cycle_state
    if not isinstance(state, Active):
        return {
            "has_cycle": False,
            "cycle_info": {
                "average_cycle_length": profile.average_cycle_length,
                "average_period_length": profile.average_period_length,
                "last_period_date": to_iso(profile.last_period_start_date)
            }
        }

    cycle = store.get_cycle(user_id, state.cycle_id)
    if cycle is None:
        logger.warning("Clearing dangling current cycle reference", extra={
            "user_id": user_id,
            "cycle_id": state.cycle_id
        })
        store.set_user_profile(user_id, {"current_cycle_id": None})
        raise NotFoundError("Current cycle not found")

    current_day = calculate_cycle_day(cycle.start_date, now)
    phase = classify_phase(current_day, profile.average_period_length)

    if cycle.predicted_end_date is not None:
        days_until_next_period = days_until(cycle.predicted_end_date, now)
    else:
        remaining = profile.average_cycle_length - current_day
        days_until_next_period = remaining if remaining > 0 else None

    return {
        "has_cycle": True,
        "cycle": {
            "id": cycle.cycle_id,
            "start_date": to_iso(cycle.start_date),
            "predicted_end_date": to_iso(cycle.predicted_end_date),
            "current_day": current_day,
            "cycle_phase": phase.value,
            "phase_description": PHASE_DESCRIPTIONS[phase],
            "days_until_next_period": days_until_next_period
        },
        "cycle_info": {
            "average_cycle_length": profile.average_cycle_length,
            "average_period_length": profile.average_period_length
        }
    }

def serialize_cycle(cycle: Cycle) -> Dict[str, Any]:
    """Cycle as a response dictionary with ISO timestamps."""
    return {
        "id": cycle.cycle_id,
        "start_date": to_iso(cycle.start_date),
        "end_date": to_iso(cycle.end_date),
        "predicted_end_date": to_iso(cycle.predicted_end_date),
        "duration": cycle.duration_days,
        "notes": cycle.notes,
        "symptoms": [
            {
                "id": s.symptom_id,
                "type": s.type,
                "intensity": s.intensity,
                "date": to_iso(s.date),
                "notes": s.notes
            }
            for s in cycle.symptoms
        ]
    }

def get_cycle_history(store: RecordStore, user_id: str, limit: int = 12) -> Dict[str, Any]:
    """
    Get the user's most recent cycles.

    Args:
        store: Record store
        user_id: Caller identity
        limit: Maximum number of cycles

    Returns:
        Dictionary with cycles, newest start date first
    """
    cycles = store.query_cycles(user_id, limit=limit)
    return {"cycles": [serialize_cycle(c) for c in cycles]}
