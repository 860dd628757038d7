"""
Pytest configuration and shared fixtures.
"""
import json
import pytest
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from src.models.cycle import Cycle, SymptomEntry
from src.models.user import UserCycleProfile
from src.services.exceptions import ConcurrentUpdateError, NotFoundError, PreconditionFailedError

class InMemoryRecordStore:
    """
    RecordStore fake backed by dictionaries.

    Mirrors the DynamoDB-backed store: profile writes bump `version`, and
    versioned writes fail with ConcurrentUpdateError when the stored version
    moved. `conflicts` makes the next N versioned writes lose a race.
    """

    def __init__(self):
        self.profiles: Dict[str, UserCycleProfile] = {}
        self.cycles: Dict[str, Dict[str, Cycle]] = {}
        self.symptoms: Dict[str, List[SymptomEntry]] = {}
        self.conflicts = 0
        self.profile_writes = 0

    def get_user_profile(self, user_id: str) -> Optional[UserCycleProfile]:
        profile = self.profiles.get(user_id)
        return profile.model_copy(deep=True) if profile else None

    def create_user_profile(self, profile: UserCycleProfile) -> None:
        if profile.user_id in self.profiles:
            raise ConcurrentUpdateError("exists")
        self.profiles[profile.user_id] = profile.model_copy(deep=True)

    def set_user_profile(
        self,
        user_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> None:
        stored = self.profiles.get(user_id)
        if expected_version is not None and self.conflicts > 0:
            self.conflicts -= 1
            raise ConcurrentUpdateError("simulated conflict")
        if stored is None:
            if expected_version is None:
                raise NotFoundError("User profile not found")
            raise ConcurrentUpdateError("missing")
        if expected_version is not None and stored.version != expected_version:
            raise ConcurrentUpdateError("version moved")

        data = stored.model_dump()
        for path, value in fields.items():
            target = data
            segments = path.split(".")
            for segment in segments[:-1]:
                target = target.setdefault(segment, {})
            target[segments[-1]] = value
        data["version"] = stored.version + 1
        self.profiles[user_id] = UserCycleProfile(**data)
        self.profile_writes += 1

    def append_to_profile_list(self, user_id: str, field: str, items: List[Dict[str, Any]]) -> None:
        data = self.profiles[user_id].model_dump()
        data[field] = data.get(field, []) + list(items)
        self.profiles[user_id] = UserCycleProfile(**data)

    def create_cycle(self, user_id: str, cycle: Cycle) -> str:
        self.cycles.setdefault(user_id, {})[cycle.cycle_id] = cycle.model_copy(deep=True)
        return cycle.cycle_id

    def get_cycle(self, user_id: str, cycle_id: str) -> Optional[Cycle]:
        cycle = self.cycles.get(user_id, {}).get(cycle_id)
        return cycle.model_copy(deep=True) if cycle else None

    def close_cycle(self, user_id: str, cycle_id: str, end_date: datetime, duration_days: int) -> None:
        cycle = self.cycles.get(user_id, {}).get(cycle_id)
        if cycle is None or not cycle.is_active:
            raise PreconditionFailedError("Cycle already ended")
        self.cycles[user_id][cycle_id] = cycle.model_copy(update={
            "end_date": end_date,
            "duration_days": duration_days
        })

    def append_cycle_symptom(self, user_id: str, cycle_id: str, symptom: SymptomEntry) -> None:
        cycle = self.cycles[user_id][cycle_id]
        cycle.symptoms.append(symptom)

    def query_cycles(self, user_id: str, closed_only: bool = False, limit: Optional[int] = None) -> List[Cycle]:
        cycles = [
            c for c in self.cycles.get(user_id, {}).values()
            if not closed_only or (c.duration_days or 0) > 0
        ]
        cycles.sort(key=lambda c: c.start_date, reverse=True)
        return cycles[:limit] if limit is not None else cycles

    def create_symptom(self, user_id: str, symptom: SymptomEntry) -> str:
        self.symptoms.setdefault(user_id, []).append(symptom)
        return symptom.symptom_id

    def query_symptoms(
        self,
        user_id: str,
        symptom_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[SymptomEntry]:
        symptoms = [
            s for s in self.symptoms.get(user_id, [])
            if (symptom_type is None or s.type == symptom_type)
            and (start_date is None or s.date >= start_date)
            and (end_date is None or s.date <= end_date)
        ]
        symptoms.sort(key=lambda s: s.date, reverse=True)
        return symptoms[:limit] if limit is not None else symptoms

@dataclass
class LambdaContext:
    """Minimal Lambda context for handler tests."""
    function_name: str = "cycle-tracker-test"
    memory_limit_in_mb: int = 128
    invoked_function_arn: str = "arn:aws:lambda:us-east-1:123456789012:function:cycle-tracker-test"
    aws_request_id: str = "52fdfc07-2182-154f-163f-5f0f9a621d72"

@pytest.fixture
def store() -> InMemoryRecordStore:
    """Create an empty in-memory record store."""
    return InMemoryRecordStore()

@pytest.fixture
def period_start() -> datetime:
    """Start of the sample user's last period."""
    return datetime(2024, 1, 1, tzinfo=timezone.utc)

@pytest.fixture
def sample_profile(period_start) -> UserCycleProfile:
    """Create a sample profile with default cycle settings."""
    return UserCycleProfile(
        user_id="123",
        email="test@example.com",
        full_name="Test User",
        last_period_start_date=period_start,
        created_at=period_start,
        updated_at=period_start
    )

@pytest.fixture
def store_with_profile(store, sample_profile) -> InMemoryRecordStore:
    """Create a store holding the sample profile."""
    store.create_user_profile(sample_profile)
    return store

@pytest.fixture
def closed_cycles() -> List[Cycle]:
    """Six closed cycles with durations 28, 30, 27, 29, 28, 26 (oldest first)."""
    start = datetime(2023, 6, 1, tzinfo=timezone.utc)
    cycles = []
    for index, duration in enumerate([28, 30, 27, 29, 28, 26]):
        cycles.append(Cycle(
            cycle_id=f"cycle{index}",
            start_date=start,
            end_date=start + timedelta(days=duration),
            duration_days=duration
        ))
        start += timedelta(days=duration)
    return cycles

@pytest.fixture
def lambda_context() -> LambdaContext:
    """Create a Lambda context."""
    return LambdaContext()

@pytest.fixture
def api_event():
    """Build an API Gateway event for an authenticated caller."""
    def build(body: Optional[Dict[str, Any]] = None, user_id: Optional[str] = "123") -> Dict[str, Any]:
        event: Dict[str, Any] = {"body": json.dumps(body or {})}
        if user_id:
            event["requestContext"] = {
                "authorizer": {"claims": {"sub": user_id, "email": "test@example.com"}}
            }
        return event
    return build
