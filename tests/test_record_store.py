"""
Tests for the DynamoDB-backed record store.
"""
import pytest
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import Mock, patch

from botocore.exceptions import ClientError

from src.models.cycle import Cycle
from src.models.user import UserCycleProfile
from src.services.exceptions import (
    ConcurrentUpdateError,
    NotFoundError,
    PreconditionFailedError,
)
from src.services.record_store import RecordStore, retry_on_conflict
from src.utils.dynamo import DynamoDBClient, from_dynamo, to_dynamo

def client_error(code: str, operation: str = "UpdateItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)

@pytest.fixture
def mock_dynamo():
    """Create a mock DynamoDB client."""
    return Mock()

@pytest.fixture
def record_store(mock_dynamo):
    """Create a record store over the mock client."""
    return RecordStore(mock_dynamo)

def test_get_user_profile_converts_decimals(record_store, mock_dynamo):
    """Test stored Decimals come back as ints and floats."""
    mock_dynamo.get_item.return_value = {
        "PK": "USER#123",
        "SK": "PROFILE",
        "user_id": "123",
        "average_cycle_length": Decimal("30"),
        "pain_patterns": {"day3": Decimal("4.2")},
        "last_period_start_date": "2024-01-01T00:00:00+00:00",
        "version": Decimal("2")
    }

    profile = record_store.get_user_profile("123")

    mock_dynamo.get_item.assert_called_once_with({"PK": "USER#123", "SK": "PROFILE"})
    assert profile.average_cycle_length == 30
    assert profile.pain_patterns == {"day3": 4.2}
    assert profile.version == 2
    assert profile.last_period_start_date == datetime(2024, 1, 1, tzinfo=timezone.utc)

def test_get_user_profile_missing(record_store, mock_dynamo):
    """Test a missing profile is None."""
    mock_dynamo.get_item.return_value = None
    assert record_store.get_user_profile("123") is None

def test_create_user_profile_refuses_overwrite(record_store, mock_dynamo):
    """Test profile creation is conditioned on absence."""
    mock_dynamo.put_item.side_effect = client_error("ConditionalCheckFailedException", "PutItem")

    with pytest.raises(ConcurrentUpdateError):
        record_store.create_user_profile(UserCycleProfile(user_id="123"))

    kwargs = mock_dynamo.put_item.call_args.kwargs
    assert kwargs["condition_expression"] == "attribute_not_exists(PK)"

def test_set_user_profile_versioned_expression(record_store, mock_dynamo):
    """Test dotted paths, Decimal values and the version condition."""
    record_store.set_user_profile("123", {"pain_patterns.day14": 4.2}, expected_version=3)

    kwargs = mock_dynamo.update_item.call_args.kwargs
    assert kwargs["key"] == {"PK": "USER#123", "SK": "PROFILE"}
    assert kwargs["update_expression"].startswith("SET #f0_0.#f0_1 = :v0, ")
    assert "#version = if_not_exists(#version, :zero) + :one" in kwargs["update_expression"]
    assert kwargs["expression_names"]["#f0_0"] == "pain_patterns"
    assert kwargs["expression_names"]["#f0_1"] == "day14"
    assert kwargs["expression_values"][":v0"] == Decimal("4.2")
    assert kwargs["expression_values"][":expected_version"] == 3
    assert kwargs["condition_expression"] == "#version = :expected_version"

def test_set_user_profile_serializes_datetimes(record_store, mock_dynamo):
    """Test datetimes are stored as ISO strings and None is kept."""
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    record_store.set_user_profile("123", {"last_period_start_date": start, "current_cycle_id": None})

    kwargs = mock_dynamo.update_item.call_args.kwargs
    assert kwargs["expression_values"][":v0"] == "2024-01-01T00:00:00+00:00"
    assert kwargs["expression_values"][":v1"] is None
    assert kwargs["condition_expression"] == "attribute_exists(PK)"

def test_set_user_profile_conflict(record_store, mock_dynamo):
    """Test a failed version check is a concurrent update."""
    mock_dynamo.update_item.side_effect = client_error("ConditionalCheckFailedException")

    with pytest.raises(ConcurrentUpdateError):
        record_store.set_user_profile("123", {"full_name": "A"}, expected_version=1)

def test_set_user_profile_missing_profile(record_store, mock_dynamo):
    """Test an unversioned write to a missing profile is not found."""
    mock_dynamo.update_item.side_effect = client_error("ConditionalCheckFailedException")

    with pytest.raises(NotFoundError):
        record_store.set_user_profile("123", {"full_name": "A"})

def test_set_user_profile_other_errors_propagate(record_store, mock_dynamo):
    """Test unrelated DynamoDB errors are not translated."""
    mock_dynamo.update_item.side_effect = client_error("ProvisionedThroughputExceededException")

    with pytest.raises(ClientError):
        record_store.set_user_profile("123", {"full_name": "A"}, expected_version=1)

def test_query_cycles_orders_by_start_date(record_store, mock_dynamo):
    """Test cycles are returned newest start first and limited."""
    mock_dynamo.query_items.return_value = [
        {"PK": "USER#123", "SK": "CYCLE#a", "cycle_id": "a", "start_date": "2024-01-01T00:00:00+00:00"},
        {"PK": "USER#123", "SK": "CYCLE#b", "cycle_id": "b", "start_date": "2024-03-01T00:00:00+00:00"},
        {"PK": "USER#123", "SK": "CYCLE#c", "cycle_id": "c", "start_date": "2024-02-01T00:00:00+00:00"},
    ]

    cycles = record_store.query_cycles("123", limit=2)

    assert [c.cycle_id for c in cycles] == ["b", "c"]
    kwargs = mock_dynamo.query_items.call_args.kwargs
    assert kwargs["partition_value"] == "USER#123"
    assert kwargs["filter_expression"] is None

def test_query_cycles_closed_only_filters(record_store, mock_dynamo):
    """Test closed_only adds a positive-duration filter."""
    mock_dynamo.query_items.return_value = []

    record_store.query_cycles("123", closed_only=True)

    expression = mock_dynamo.query_items.call_args.kwargs["filter_expression"].get_expression()
    assert expression["operator"] == ">"
    assert expression["values"][1] == 0

def test_query_symptoms_date_bounds(record_store, mock_dynamo):
    """Test date bounds become a sort key range read newest first."""
    mock_dynamo.query_items.return_value = []

    record_store.query_symptoms(
        "123",
        symptom_type="cramps",
        start_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, 1, 31, tzinfo=timezone.utc),
        limit=10
    )

    kwargs = mock_dynamo.query_items.call_args.kwargs
    bounds = kwargs["sort_key_condition"].get_expression()["values"]
    assert bounds[1] == "SYMPTOM#2024-01-01T00:00:00+00:00"
    assert bounds[2] == "SYMPTOM#2024-01-31T00:00:00+00:00$"
    assert kwargs["scan_forward"] is False
    assert kwargs["limit"] == 10
    assert kwargs["filter_expression"].get_expression()["values"][1] == "cramps"

def test_create_cycle_item_layout(record_store, mock_dynamo):
    """Test cycles are stored under the user's partition."""
    cycle = Cycle(cycle_id="abc", start_date=datetime(2024, 1, 1, tzinfo=timezone.utc))

    record_store.create_cycle("123", cycle)

    item = mock_dynamo.put_item.call_args.args[0]
    assert item["PK"] == "USER#123"
    assert item["SK"] == "CYCLE#abc"
    assert item["start_date"] == "2024-01-01T00:00:00Z"

def test_close_cycle_only_closes_open_cycles(record_store, mock_dynamo):
    """Test the end date is written under an open-cycle condition."""
    end = datetime(2024, 1, 29, tzinfo=timezone.utc)
    record_store.close_cycle("123", "c1", end, 28)

    kwargs = mock_dynamo.update_item.call_args.kwargs
    assert kwargs["key"] == {"PK": "USER#123", "SK": "CYCLE#c1"}
    assert kwargs["expression_values"][":v0"] == "2024-01-29T00:00:00+00:00"
    assert kwargs["expression_values"][":v1"] == 28
    assert kwargs["expression_values"][":null"] is None
    assert kwargs["expression_names"]["#end_date"] == "end_date"
    assert kwargs["condition_expression"] == (
        "attribute_exists(PK) AND (attribute_not_exists(#end_date) OR #end_date = :null)"
    )

def test_close_cycle_already_closed(record_store, mock_dynamo):
    """Test a failed open-cycle condition is a precondition failure."""
    mock_dynamo.update_item.side_effect = client_error("ConditionalCheckFailedException")

    with pytest.raises(PreconditionFailedError):
        record_store.close_cycle("123", "c1", datetime(2024, 1, 29, tzinfo=timezone.utc), 28)

def test_retry_on_conflict_retries():
    """Test the operation is re-run after conflicts."""
    operation = Mock(side_effect=[ConcurrentUpdateError("x"), ConcurrentUpdateError("x"), "done"])

    assert retry_on_conflict(operation) == "done"
    assert operation.call_count == 3

def test_retry_on_conflict_gives_up():
    """Test retries stop after the attempt budget."""
    operation = Mock(side_effect=ConcurrentUpdateError("x"))

    with pytest.raises(ConcurrentUpdateError):
        retry_on_conflict(operation, attempts=2)
    assert operation.call_count == 2

def test_retry_on_conflict_passes_other_errors():
    """Test non-conflict errors are not retried."""
    operation = Mock(side_effect=NotFoundError("gone"))

    with pytest.raises(NotFoundError):
        retry_on_conflict(operation)
    assert operation.call_count == 1

def test_dynamo_query_follows_pages():
    """Test queries follow LastEvaluatedKey up to the limit."""
    with patch('src.utils.dynamo.boto3') as mock_boto3:
        table = mock_boto3.resource.return_value.Table.return_value
        table.query.side_effect = [
            {"Items": [{"id": 1}, {"id": 2}], "LastEvaluatedKey": {"SK": "2"}},
            {"Items": [{"id": 3}], "LastEvaluatedKey": {"SK": "3"}},
        ]
        client = DynamoDBClient("table")

        items = client.query_items("PK", "USER#123", limit=3)

    assert [item["id"] for item in items] == [1, 2, 3]
    second_call = table.query.call_args_list[1].kwargs
    assert second_call["ExclusiveStartKey"] == {"SK": "2"}
    assert second_call["Limit"] == 1

def test_dynamo_conversions():
    """Test float to Decimal conversion and back."""
    stored = to_dynamo({"a": 1.5, "b": [2.0, True], "c": "x"})
    assert stored == {"a": Decimal("1.5"), "b": [Decimal("2.0"), True], "c": "x"}
    assert from_dynamo(stored) == {"a": 1.5, "b": [2, True], "c": "x"}
