"""
Service module for the mood garden.

Each mood log can record completed wellness activities and may plant a new
plant whose kind reflects the mood score. A plant is added to an empty
garden, or when the newest plant is at least PLANT_SPAWN_INTERVAL_DAYS old.
"""
import math
import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from src.models.mood import MoodPlant, WellnessActivity
from src.services.constants import (
    DEFAULT_ACTIVITY_POINTS,
    HIGH_MOOD_THRESHOLD,
    MEDIUM_MOOD_THRESHOLD,
    PLANT_BANDS,
    PLANT_SPAWN_INTERVAL_DAYS,
)
from src.services.exceptions import InvalidArgumentError, NotFoundError
from src.services.record_store import RecordStore, retry_on_conflict
from src.services.utils import SECONDS_PER_DAY, ensure_utc, round_half_up, to_iso, utc_now
from src.utils.logging import logger

def determine_plant_type(mood_score: int, rng: random.Random = None) -> str:
    """
    Pick a plant uniformly from the band the mood score falls in.

    Example:
        >>> determine_plant_type(9) in ["sunflower", "tulip", "rose", "hibiscus", "daisy"]
        True
    """
    choose = (rng or random).choice
    for minimum_score, plants in PLANT_BANDS:
        if mood_score >= minimum_score:
            return choose(plants)
    return choose(PLANT_BANDS[-1][1])

def should_add_plant(plants: List[MoodPlant], mood_date: datetime) -> bool:
    """
    True if the garden is empty or its newest plant is old enough.

    The newest plant is the one with the latest planted_at, whatever the
    order of the list.
    """
    if not plants:
        return True
    latest = max(ensure_utc(plant.planted_at) for plant in plants)
    days_since = math.floor(
        (ensure_utc(mood_date) - latest).total_seconds() / SECONDS_PER_DAY
    )
    return days_since >= PLANT_SPAWN_INTERVAL_DAYS

def calculate_mood_trends(plants: List[MoodPlant]) -> Dict[str, Any]:
    """
    Average mood and high/medium/low distribution over the garden.

    Returns:
        {"average_mood": float, "mood_distribution": {"high", "medium", "low"}}
    """
    distribution = {"high": 0, "medium": 0, "low": 0}
    if not plants:
        return {"average_mood": 0, "mood_distribution": distribution}

    for plant in plants:
        if plant.mood_score >= HIGH_MOOD_THRESHOLD:
            distribution["high"] += 1
        elif plant.mood_score >= MEDIUM_MOOD_THRESHOLD:
            distribution["medium"] += 1
        else:
            distribution["low"] += 1

    average = sum(plant.mood_score for plant in plants) / len(plants)
    return {
        "average_mood": round_half_up(average, 1),
        "mood_distribution": distribution
    }

def serialize_plant(plant: MoodPlant) -> Dict[str, Any]:
    """Plant as a response dictionary."""
    return {
        "plant_type": plant.plant_type,
        "planted_at": to_iso(plant.planted_at),
        "mood_score": plant.mood_score
    }

def log_mood_entry(
    store: RecordStore,
    user_id: str,
    mood_score: int,
    date: Optional[datetime] = None,
    notes: str = "",
    completed_activities: Optional[List[Dict[str, Any]]] = None,
    rng: random.Random = None
) -> Dict[str, Any]:
    """
    Log a mood and grow the garden.

    Completed activities are appended once the garden write has gone
    through, so a call that gives up on write conflicts records nothing.

    Args:
        store: Record store
        user_id: Caller identity
        mood_score: Mood 1-10
        date: When the mood was felt, defaults to now
        notes: Free-text notes
        completed_activities: Optional [{type, points?}] wellness activities
        rng: Optional random source for the plant choice

    Returns:
        Dictionary with mood_logged, total_plants and, when a plant was
        added, new_plant

    Raises:
        InvalidArgumentError: If the mood score is not 1-10
        NotFoundError: If the user has no profile
    """
    if not isinstance(mood_score, int) or not 1 <= mood_score <= 10:
        raise InvalidArgumentError("Mood score must be between 1 and 10")

    mood_date = ensure_utc(date or utc_now())

    if store.get_user_profile(user_id) is None:
        raise NotFoundError("User profile not found")

    def apply_mood() -> Dict[str, Any]:
        profile = store.get_user_profile(user_id)
        if profile is None:
            raise NotFoundError("User profile not found")
        garden = profile.mood_garden

        if not should_add_plant(garden.plants, mood_date):
            return {"mood_logged": True, "total_plants": garden.total_plants}

        plant = MoodPlant(
            plant_type=determine_plant_type(mood_score, rng),
            planted_at=mood_date,
            mood_score=mood_score
        )
        updated = garden.model_copy(update={
            "plants": garden.plants + [plant],
            "total_plants": garden.total_plants + 1
        })
        store.set_user_profile(
            user_id,
            {"mood_garden": updated.model_dump()},
            expected_version=profile.version
        )
        return {
            "mood_logged": True,
            "new_plant": serialize_plant(plant),
            "total_plants": updated.total_plants
        }

    result = retry_on_conflict(apply_mood)

    if completed_activities:
        activities = [
            WellnessActivity(
                date=mood_date,
                activity_type=activity["type"],
                points_earned=activity.get("points") or DEFAULT_ACTIVITY_POINTS
            ).model_dump()
            for activity in completed_activities
        ]
        store.append_to_profile_list(user_id, "wellness_activities", activities)

    logger.info("Mood logged", extra={
        "user_id": user_id,
        "mood_score": mood_score,
        "plant_added": "new_plant" in result
    })

    return result

def get_mood_garden(store: RecordStore, user_id: str) -> Dict[str, Any]:
    """
    Get the garden and the mood trends it reflects.

    Raises:
        NotFoundError: If the user has no profile
    """
    profile = store.get_user_profile(user_id)
    if profile is None:
        raise NotFoundError("User profile not found")

    garden = profile.mood_garden
    plants = sorted(garden.plants, key=lambda p: ensure_utc(p.planted_at))
    total_points = sum(a.points_earned for a in profile.wellness_activities)

    return {
        "garden": {
            "total_plants": garden.total_plants,
            "plants": [serialize_plant(p) for p in plants]
        },
        "mood_trends": calculate_mood_trends(plants),
        "wellness_points": total_points
    }
