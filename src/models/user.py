"""
User profile model definition for cycle tracking.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass
from pydantic import BaseModel, Field

from src.models.mood import MoodGarden, WellnessActivity

DEFAULT_CYCLE_LENGTH = 28
DEFAULT_PERIOD_LENGTH = 5

@dataclass(frozen=True)
class Idle:
    """No cycle is in progress."""
    pass

@dataclass(frozen=True)
class Active:
    """A cycle is in progress."""
    cycle_id: str

CycleState = Union[Idle, Active]

class BiosensorReading(BaseModel):
    """Readings from a wearable, only the metrics the device reported are set."""
    date: datetime
    pain_level_detected: Optional[float] = None
    body_temperature: Optional[float] = None
    heart_rate: Optional[float] = None
    other_sensor_metrics: Optional[Dict[str, Any]] = None

class UserCycleProfile(BaseModel):
    """
    Represents a user's cycle profile, the aggregate every core write goes through.

    `version` is the optimistic concurrency token; it is bumped by every
    versioned write to the profile item.
    """
    user_id: str
    email: str = ""
    full_name: str = ""
    birth_date: Optional[datetime] = None
    average_cycle_length: int = Field(DEFAULT_CYCLE_LENGTH, gt=0)
    average_period_length: int = Field(DEFAULT_PERIOD_LENGTH, gt=0)
    last_period_start_date: Optional[datetime] = None
    pain_patterns: Dict[str, float] = Field(default_factory=dict)
    current_cycle_id: Optional[str] = None
    mood_garden: MoodGarden = Field(default_factory=MoodGarden)
    wellness_activities: List[WellnessActivity] = Field(default_factory=list)
    biosensor_data: List[BiosensorReading] = Field(default_factory=list)
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def cycle_state(self) -> CycleState:
        """Explicit Idle/Active view of `current_cycle_id`."""
        if self.current_cycle_id:
            return Active(self.current_cycle_id)
        return Idle()
