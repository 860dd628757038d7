"""
Record store service for user profiles, cycles and symptoms.

This module is the only place that knows the DynamoDB item layout. Services
receive a RecordStore and work with pydantic models; the store converts to
and from DynamoDB items (Decimal numbers, ISO-8601 timestamps).

Item layout (single table, partition key PK, sort key SK):
    USER#<user_id> / PROFILE                      -> UserCycleProfile
    USER#<user_id> / CYCLE#<cycle_id>             -> Cycle
    USER#<user_id> / SYMPTOM#<iso-date>#<id>      -> SymptomEntry

Profile writes that depend on a previous read pass `expected_version`; the
write is then conditioned on the stored version and bumps it, so two
concurrent read-modify-write sequences cannot both succeed.

Typical usage:
    store = get_record_store()
    profile = store.get_user_profile(user_id)
    store.set_user_profile(
        user_id,
        {"pain_patterns.day14": 4.2},
        expected_version=profile.version
    )
"""
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from src.models.cycle import Cycle, SymptomEntry
from src.models.user import UserCycleProfile
from src.services.constants import PROFILE_WRITE_ATTEMPTS
from src.services.exceptions import (
    ConcurrentUpdateError,
    NotFoundError,
    PreconditionFailedError,
)
from src.services.utils import ensure_utc, to_iso, utc_now
from src.utils.dynamo import (
    CYCLE_SK_PREFIX,
    PROFILE_SK,
    SYMPTOM_SK_PREFIX,
    DynamoDBClient,
    create_cycle_sk,
    create_pk,
    create_symptom_sk,
    from_dynamo,
    get_dynamo,
    to_dynamo,
)
from src.utils.logging import logger

T = TypeVar("T")

_record_store = None

def get_record_store() -> 'RecordStore':
    """Get or create the shared RecordStore (lazy loading)."""
    global _record_store
    if _record_store is None:
        _record_store = RecordStore(get_dynamo())
    return _record_store

def retry_on_conflict(
    operation: Callable[[], T],
    attempts: int = PROFILE_WRITE_ATTEMPTS
) -> T:
    """
    Run a read-compute-write operation, re-running it when the versioned
    write loses a race.

    Args:
        operation: Callable that reads the profile, computes and writes with
            expected_version
        attempts: Maximum number of runs

    Returns:
        Whatever the operation returns

    Raises:
        ConcurrentUpdateError: If every attempt conflicted
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except ConcurrentUpdateError:
            logger.warning("Profile write conflict, retrying", extra={
                "attempt": attempt,
                "max_attempts": attempts
            })
    raise ConcurrentUpdateError(f"Profile update failed after {attempts} attempts")

def _build_set_expression(fields: Dict[str, Any]) -> tuple:
    """
    Build a SET expression for dotted field paths.

    Every path segment goes through ExpressionAttributeNames, so reserved
    words such as "date" are safe.

    Returns:
        Tuple of (expression clauses, names, values)
    """
    clauses = []
    names = {}
    values = {}
    for index, (path, value) in enumerate(fields.items()):
        segments = []
        for position, segment in enumerate(path.split(".")):
            placeholder = f"#f{index}_{position}"
            names[placeholder] = segment
            segments.append(placeholder)
        clauses.append(f"{'.'.join(segments)} = :v{index}")
        values[f":v{index}"] = to_dynamo(value)
    return clauses, names, values

def _serialize(value: Any) -> Any:
    """Convert datetimes (recursively) to ISO strings."""
    if isinstance(value, datetime):
        return to_iso(value)
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    return value

def _strip_keys(item: Dict[str, Any]) -> Dict[str, Any]:
    """Drop the table keys from an item and convert Decimals."""
    return from_dynamo({k: v for k, v in item.items() if k not in ("PK", "SK")})

class RecordStore:
    """Domain access layer over the tracker table."""

    def __init__(self, dynamo: DynamoDBClient):
        self.dynamo = dynamo

    # Profiles

    def get_user_profile(self, user_id: str) -> Optional[UserCycleProfile]:
        """
        Get a user's cycle profile.

        Args:
            user_id: Caller identity

        Returns:
            UserCycleProfile if found, None otherwise
        """
        item = self.dynamo.get_item({"PK": create_pk(user_id), "SK": PROFILE_SK})
        if not item:
            return None
        return UserCycleProfile(**_strip_keys(item))

    def create_user_profile(self, profile: UserCycleProfile) -> None:
        """
        Store a new profile. Refuses to overwrite an existing one.

        Raises:
            ConcurrentUpdateError: If the profile was created concurrently
        """
        item = {
            "PK": create_pk(profile.user_id),
            "SK": PROFILE_SK,
            **profile.model_dump(mode="json")
        }
        try:
            self.dynamo.put_item(
                to_dynamo(item),
                condition_expression="attribute_not_exists(PK)"
            )
        except ClientError as e:
            if _is_condition_failure(e):
                raise ConcurrentUpdateError(
                    f"Profile for user {profile.user_id} already exists"
                )
            raise

    def set_user_profile(
        self,
        user_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None
    ) -> None:
        """
        Partially update a profile with dotted field paths.

        Args:
            user_id: Caller identity
            fields: Mapping of field path to value, e.g.
                {"pain_patterns.day14": 4.2, "current_cycle_id": None}
            expected_version: When given, the write only succeeds if the
                stored version still matches. Every write bumps the version.

        Raises:
            ConcurrentUpdateError: If the stored version changed
            NotFoundError: If an unversioned write finds no profile
        """
        fields = {**_serialize(fields), "updated_at": to_iso(utc_now())}
        clauses, names, values = _build_set_expression(fields)
        names["#version"] = "version"
        values[":zero"] = 0
        values[":one"] = 1
        clauses.append("#version = if_not_exists(#version, :zero) + :one")
        condition = "attribute_exists(PK)"

        if expected_version is not None:
            values[":expected_version"] = expected_version
            condition = "#version = :expected_version"

        try:
            self.dynamo.update_item(
                key={"PK": create_pk(user_id), "SK": PROFILE_SK},
                update_expression="SET " + ", ".join(clauses),
                expression_values=values,
                expression_names=names,
                condition_expression=condition
            )
        except ClientError as e:
            if _is_condition_failure(e):
                if expected_version is None:
                    raise NotFoundError("User profile not found")
                raise ConcurrentUpdateError(
                    f"Profile for user {user_id} changed since version {expected_version}"
                )
            raise

    def append_to_profile_list(
        self,
        user_id: str,
        field: str,
        items: List[Dict[str, Any]]
    ) -> None:
        """
        Atomically append items to a list field of the profile.

        Args:
            user_id: Caller identity
            field: List attribute name, e.g. "wellness_activities"
            items: Items to append
        """
        self.dynamo.update_item(
            key={"PK": create_pk(user_id), "SK": PROFILE_SK},
            update_expression=(
                "SET #field = list_append(if_not_exists(#field, :empty), :items), "
                "#updated_at = :now"
            ),
            expression_values={
                ":items": to_dynamo(_serialize(items)),
                ":empty": [],
                ":now": to_iso(utc_now())
            },
            expression_names={"#field": field, "#updated_at": "updated_at"}
        )

    # Cycles

    def create_cycle(self, user_id: str, cycle: Cycle) -> str:
        """
        Store a new cycle.

        Returns:
            The cycle identifier
        """
        item = {
            "PK": create_pk(user_id),
            "SK": create_cycle_sk(cycle.cycle_id),
            **cycle.model_dump(mode="json")
        }
        self.dynamo.put_item(to_dynamo(item))
        return cycle.cycle_id

    def get_cycle(self, user_id: str, cycle_id: str) -> Optional[Cycle]:
        """Get a cycle by identifier, None if absent."""
        item = self.dynamo.get_item({
            "PK": create_pk(user_id),
            "SK": create_cycle_sk(cycle_id)
        })
        if not item:
            return None
        return Cycle(**_strip_keys(item))

    def close_cycle(
        self,
        user_id: str,
        cycle_id: str,
        end_date: datetime,
        duration_days: int
    ) -> None:
        """
        Set the end of a cycle, only if it is still open.

        Raises:
            PreconditionFailedError: If the cycle is missing or already closed
        """
        fields = {
            "end_date": to_iso(end_date),
            "duration_days": duration_days,
            "updated_at": to_iso(utc_now())
        }
        clauses, names, values = _build_set_expression(fields)
        names["#end_date"] = "end_date"
        values[":null"] = None
        try:
            self.dynamo.update_item(
                key={"PK": create_pk(user_id), "SK": create_cycle_sk(cycle_id)},
                update_expression="SET " + ", ".join(clauses),
                expression_values=values,
                expression_names=names,
                condition_expression=(
                    "attribute_exists(PK) AND "
                    "(attribute_not_exists(#end_date) OR #end_date = :null)"
                )
            )
        except ClientError as e:
            if _is_condition_failure(e):
                raise PreconditionFailedError("Cycle already ended")
            raise

    def append_cycle_symptom(self, user_id: str, cycle_id: str, symptom: SymptomEntry) -> None:
        """Atomically append a symptom to a cycle's embedded list."""
        self.dynamo.update_item(
            key={"PK": create_pk(user_id), "SK": create_cycle_sk(cycle_id)},
            update_expression=(
                "SET #symptoms = list_append(if_not_exists(#symptoms, :empty), :items), "
                "#updated_at = :now"
            ),
            expression_values={
                ":items": [to_dynamo(symptom.model_dump(mode="json"))],
                ":empty": [],
                ":now": to_iso(utc_now())
            },
            expression_names={"#symptoms": "symptoms", "#updated_at": "updated_at"},
            condition_expression="attribute_exists(PK)"
        )

    def query_cycles(
        self,
        user_id: str,
        closed_only: bool = False,
        limit: Optional[int] = None
    ) -> List[Cycle]:
        """
        Get a user's cycles, most recent start date first.

        Cycle sort keys carry no date, so ordering happens here after the
        partition query.

        Args:
            user_id: Caller identity
            closed_only: Only cycles with a positive duration
            limit: Optional maximum number of cycles

        Returns:
            List of cycles ordered by start date, newest first
        """
        items = self.dynamo.query_items(
            partition_key="PK",
            partition_value=create_pk(user_id),
            sort_key_condition=Key("SK").begins_with(CYCLE_SK_PREFIX),
            filter_expression=Attr("duration_days").gt(0) if closed_only else None
        )
        cycles = [Cycle(**_strip_keys(item)) for item in items]
        cycles.sort(key=lambda c: ensure_utc(c.start_date), reverse=True)
        return cycles[:limit] if limit is not None else cycles

    # Symptoms

    def create_symptom(self, user_id: str, symptom: SymptomEntry) -> str:
        """
        Store a symptom in the flat per-user collection.

        Returns:
            The symptom identifier
        """
        item = {
            "PK": create_pk(user_id),
            "SK": create_symptom_sk(to_iso(symptom.date), symptom.symptom_id),
            **symptom.model_dump(mode="json")
        }
        self.dynamo.put_item(to_dynamo(item))
        return symptom.symptom_id

    def query_symptoms(
        self,
        user_id: str,
        symptom_type: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[SymptomEntry]:
        """
        Get a user's symptoms, newest event date first.

        Args:
            user_id: Caller identity
            symptom_type: Optional type filter
            start_date: Optional inclusive lower bound on the event date
            end_date: Optional inclusive upper bound on the event date
            limit: Optional maximum number of symptoms

        Returns:
            List of symptoms ordered by date, newest first
        """
        lower = SYMPTOM_SK_PREFIX + (to_iso(start_date) if start_date else "")
        # "$" sorts after "#", so the bound includes every id at end_date
        upper = SYMPTOM_SK_PREFIX + (to_iso(end_date) + "$" if end_date else "~")

        items = self.dynamo.query_items(
            partition_key="PK",
            partition_value=create_pk(user_id),
            sort_key_condition=Key("SK").between(lower, upper),
            scan_forward=False,
            limit=limit,
            filter_expression=Attr("type").eq(symptom_type) if symptom_type else None
        )
        return [SymptomEntry(**_strip_keys(item)) for item in items]

def new_id() -> str:
    """Generate a record identifier."""
    return uuid.uuid4().hex

def _is_condition_failure(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"
