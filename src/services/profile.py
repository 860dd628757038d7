"""
Service module for user profile bootstrap, reads and wearable readings.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from src.models.user import BiosensorReading, UserCycleProfile
from src.services.exceptions import InvalidArgumentError, NotFoundError
from src.services.record_store import RecordStore
from src.services.utils import ensure_utc, to_iso, utc_now
from src.utils.logging import logger

def update_user_profile(
    store: RecordStore,
    user_id: str,
    email: str = "",
    full_name: Optional[str] = None,
    birth_date: Optional[datetime] = None,
    cycle_info: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Create the user's profile with defaults, or update the given fields.

    Args:
        store: Record store
        user_id: Caller identity
        email: Email from the caller's identity, used on creation
        full_name: Optional display name
        birth_date: Optional birth date
        cycle_info: Optional {last_period_date, average_cycle_length,
            average_period_length}

    Returns:
        Dictionary with message, user_id and created
    """
    cycle_info = {k: v for k, v in (cycle_info or {}).items() if v is not None}
    fields: Dict[str, Any] = {}
    if full_name is not None:
        fields["full_name"] = full_name
    if birth_date is not None:
        fields["birth_date"] = ensure_utc(birth_date)
    if "last_period_date" in cycle_info:
        fields["last_period_start_date"] = ensure_utc(cycle_info["last_period_date"])
    for key in ("average_cycle_length", "average_period_length"):
        if key in cycle_info:
            fields[key] = cycle_info[key]

    if store.get_user_profile(user_id) is None:
        now = utc_now()
        store.create_user_profile(UserCycleProfile(
            user_id=user_id,
            email=email,
            created_at=now,
            updated_at=now,
            **fields
        ))
        logger.info("Profile created", extra={"user_id": user_id})
        return {
            "message": "Profile created successfully",
            "user_id": user_id,
            "created": True
        }

    if fields:
        store.set_user_profile(user_id, fields)
    logger.info("Profile updated", extra={
        "user_id": user_id,
        "fields": sorted(fields)
    })
    return {
        "message": "Profile updated successfully",
        "user_id": user_id,
        "created": False
    }

def get_user_profile(store: RecordStore, user_id: str) -> Dict[str, Any]:
    """
    Get the user's profile with ISO timestamps.

    Raises:
        NotFoundError: If the user has no profile
    """
    profile = store.get_user_profile(user_id)
    if profile is None:
        raise NotFoundError("User profile not found")
    return {"profile": profile.model_dump(mode="json", exclude={"version"})}

def record_biosensor_data(
    store: RecordStore,
    user_id: str,
    pain_level_detected: Optional[float] = None,
    body_temperature: Optional[float] = None,
    heart_rate: Optional[float] = None,
    other_sensor_metrics: Optional[Dict[str, Any]] = None,
    date: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Append a wearable reading to the profile.

    Args:
        store: Record store
        user_id: Caller identity
        pain_level_detected: Pain level estimated by the device
        body_temperature: Body temperature
        heart_rate: Heart rate
        other_sensor_metrics: Any further device metrics, stored as given
        date: When the reading was taken, defaults to now

    Returns:
        Dictionary with recorded_at

    Raises:
        InvalidArgumentError: If none of pain, temperature or heart rate is given
        NotFoundError: If the user has no profile
    """
    if pain_level_detected is None and body_temperature is None and heart_rate is None:
        raise InvalidArgumentError("At least one biosensor metric is required")

    if store.get_user_profile(user_id) is None:
        raise NotFoundError("User profile not found")

    reading = BiosensorReading(
        date=ensure_utc(date or utc_now()),
        pain_level_detected=pain_level_detected,
        body_temperature=body_temperature,
        heart_rate=heart_rate,
        other_sensor_metrics=other_sensor_metrics
    )
    store.append_to_profile_list(
        user_id, "biosensor_data", [reading.model_dump(exclude_none=True)]
    )

    logger.info("Biosensor data recorded", extra={
        "user_id": user_id,
        "metrics": sorted(reading.model_dump(exclude_none=True, exclude={"date"}))
    })
    return {"recorded_at": to_iso(reading.date)}
