"""
Mood garden model definitions.
"""
from datetime import datetime
from typing import List
from pydantic import BaseModel, Field

class MoodPlant(BaseModel):
    """A plant spawned in the mood garden by a mood log."""
    plant_type: str
    planted_at: datetime
    mood_score: int = Field(..., ge=1, le=10)

class MoodGarden(BaseModel):
    """The user's garden of plants."""
    total_plants: int = 0
    plants: List[MoodPlant] = Field(default_factory=list)

class WellnessActivity(BaseModel):
    """A completed wellness activity and the points it earned."""
    date: datetime
    activity_type: str
    points_earned: int = 5
