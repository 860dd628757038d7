"""
Cycle and symptom model definitions.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

class SymptomEntry(BaseModel):
    """
    A single symptom observation. Immutable once created; stored both
    embedded in its cycle and in the flat per-user symptom collection.
    """
    symptom_id: str
    type: str = Field(..., min_length=1)
    intensity: int = Field(..., ge=1, le=10)
    date: datetime
    notes: str = ""
    cycle_id: Optional[str] = None
    created_at: Optional[datetime] = None

class Cycle(BaseModel):
    """
    One cycle instance owned by a user.

    `end_date` and `duration_days` stay None until the cycle is closed.
    `predicted_end_date` is fixed at creation.
    """
    cycle_id: str
    start_date: datetime
    end_date: Optional[datetime] = None
    predicted_end_date: Optional[datetime] = None
    duration_days: Optional[int] = None
    symptoms: List[SymptomEntry] = Field(default_factory=list)
    notes: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        """True while the cycle has not been closed."""
        return self.end_date is None
