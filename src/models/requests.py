"""
Request payload models for the Lambda handlers.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

class SymptomInput(BaseModel):
    """Symptom supplied together with a cycle start."""
    type: str = Field(..., min_length=1)
    intensity: int = Field(..., ge=1, le=10)
    date: Optional[datetime] = None
    notes: str = ""

class StartCycleRequest(BaseModel):
    """Start cycle request model."""
    start_date: datetime
    symptoms: List[SymptomInput] = Field(default_factory=list)
    notes: str = ""

class EndCycleRequest(BaseModel):
    """End cycle request model."""
    cycle_id: Optional[str] = None
    end_date: Optional[datetime] = None

class CycleHistoryRequest(BaseModel):
    """Cycle history request model."""
    limit: int = Field(12, ge=1, le=100)

class LogSymptomRequest(BaseModel):
    """Symptom log request model."""
    symptom_type: str = Field(..., min_length=1)
    intensity: int = Field(..., ge=1, le=10)
    date: Optional[datetime] = None
    notes: str = ""
    cycle_id: Optional[str] = None

class SymptomHistoryRequest(BaseModel):
    """Symptom history request model."""
    symptom_type: Optional[str] = None
    limit: int = Field(50, ge=1, le=200)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

class PredictPainRequest(BaseModel):
    """Pain forecast request model."""
    use_ml: bool = False

class CompletedActivity(BaseModel):
    """Wellness activity reported with a mood log."""
    type: str = Field(..., min_length=1)
    points: int = Field(5, ge=0)

class LogMoodRequest(BaseModel):
    """Mood log request model."""
    mood_score: int = Field(..., ge=1, le=10)
    date: Optional[datetime] = None
    notes: str = ""
    completed_activities: List[CompletedActivity] = Field(default_factory=list)

class CycleInfoInput(BaseModel):
    """Cycle settings accepted on profile create/update."""
    last_period_date: Optional[datetime] = None
    average_cycle_length: Optional[int] = Field(None, gt=0)
    average_period_length: Optional[int] = Field(None, gt=0)

class UpdateProfileRequest(BaseModel):
    """Profile create/update request model."""
    full_name: Optional[str] = None
    birth_date: Optional[datetime] = None
    cycle_info: Optional[CycleInfoInput] = None

class RecordBiosensorRequest(BaseModel):
    """Biosensor reading request model."""
    date: Optional[datetime] = None
    pain_level_detected: Optional[float] = None
    body_temperature: Optional[float] = None
    heart_rate: Optional[float] = None
    other_sensor_metrics: Optional[Dict[str, Any]] = None
