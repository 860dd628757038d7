"""
DynamoDB utility functions for data access.
"""
import os
from decimal import Decimal
from typing import Dict, List, Optional, Any
import boto3
from boto3.dynamodb.conditions import Key

# Singleton instance
_dynamo_instance = None

PROFILE_SK = "PROFILE"
CYCLE_SK_PREFIX = "CYCLE#"
SYMPTOM_SK_PREFIX = "SYMPTOM#"

def get_dynamo() -> 'DynamoDBClient':
    """
    Get or create singleton DynamoDB client instance.

    This is the ONLY way to access DynamoDB in this project. Never instantiate
    DynamoDBClient directly outside of tests. This ensures consistent table
    access across the codebase and proper error handling for missing
    configuration.

    Example:
        # Correct usage
        dynamo = get_dynamo()
        item = dynamo.get_item({"PK": create_pk("123"), "SK": PROFILE_SK})

        # Incorrect usage - Don't do this
        # dynamo = DynamoDBClient(os.environ['TRACKER_TABLE_NAME'])

    Returns:
        DynamoDBClient: Singleton instance of DynamoDB client

    Raises:
        EnvironmentError: If TRACKER_TABLE_NAME environment variable is not set
    """
    global _dynamo_instance
    if _dynamo_instance is None:
        try:
            table_name = os.environ['TRACKER_TABLE_NAME']
        except KeyError:
            raise EnvironmentError(
                "TRACKER_TABLE_NAME environment variable not set. "
                "This variable must be set to the DynamoDB table name."
            )
        _dynamo_instance = DynamoDBClient(table_name)
    return _dynamo_instance

class DynamoDBClient:
    """Client for interacting with DynamoDB table."""

    def __init__(self, table_name: str):
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)

    def put_item(
        self,
        item: Dict[str, Any],
        condition_expression: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Put a single item into the table.

        Args:
            item: Dictionary containing item attributes
            condition_expression: Optional condition, e.g. to refuse overwrites

        Returns:
            Response from DynamoDB
        """
        kwargs = {"Item": item}
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression
        return self.table.put_item(**kwargs)

    def get_item(self, key: Dict[str, str]) -> Optional[Dict[str, Any]]:
        """
        Get a single item from the table.

        Args:
            key: Dictionary containing partition key and sort key

        Returns:
            Item if found, None otherwise
        """
        response = self.table.get_item(Key=key)
        return response.get('Item')

    def query_items(
        self,
        partition_key: str,
        partition_value: str,
        sort_key_condition: Optional[Key] = None,
        scan_forward: bool = True,
        limit: Optional[int] = None,
        filter_expression: Optional[Any] = None
    ) -> List[Dict[str, Any]]:
        """
        Query items using partition key and optional sort key condition.

        Follows LastEvaluatedKey until the limit is reached or the
        partition is exhausted.

        Args:
            partition_key: Name of partition key
            partition_value: Value of partition key
            sort_key_condition: Optional sort key condition
            scan_forward: False to read the sort key in descending order
            limit: Optional maximum number of items to return
            filter_expression: Optional boto3 Attr condition

        Returns:
            List of matching items
        """
        key_condition = Key(partition_key).eq(partition_value)
        if sort_key_condition:
            key_condition = key_condition & sort_key_condition

        kwargs = {
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": scan_forward
        }
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression

        items = []
        while True:
            if limit is not None:
                kwargs["Limit"] = limit - len(items)
            response = self.table.query(**kwargs)
            items.extend(response.get('Items', []))
            last_key = response.get('LastEvaluatedKey')
            if not last_key or (limit is not None and len(items) >= limit):
                break
            kwargs["ExclusiveStartKey"] = last_key
        return items

    def update_item(
        self,
        key: Dict[str, str],
        update_expression: str,
        expression_values: Dict[str, Any],
        expression_names: Optional[Dict[str, str]] = None,
        condition_expression: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Update an item in the table.

        Args:
            key: Dictionary containing partition key and sort key
            update_expression: Update expression
            expression_values: Expression attribute values
            expression_names: Optional expression attribute names
            condition_expression: Optional condition that must hold for the write

        Returns:
            Response from DynamoDB
        """
        kwargs = {
            "Key": key,
            "UpdateExpression": update_expression,
            "ExpressionAttributeValues": expression_values,
            "ReturnValues": "ALL_NEW"
        }
        if expression_names:
            kwargs["ExpressionAttributeNames"] = expression_names
        if condition_expression:
            kwargs["ConditionExpression"] = condition_expression
        return self.table.update_item(**kwargs)

def create_pk(user_id: str) -> str:
    """Create partition key from user ID."""
    return f"USER#{user_id}"

def create_cycle_sk(cycle_id: str) -> str:
    """Create sort key for a cycle record."""
    return f"{CYCLE_SK_PREFIX}{cycle_id}"

def create_symptom_sk(date_str: str, symptom_id: str) -> str:
    """
    Create sort key for a flat symptom entry.

    The ISO date leads the key so a descending query returns the newest
    symptoms first.

    Args:
        date_str: ISO format timestamp of the symptom
        symptom_id: Symptom identifier

    Returns:
        Sort key in format "SYMPTOM#{date_str}#{symptom_id}"
    """
    return f"{SYMPTOM_SK_PREFIX}{date_str}#{symptom_id}"

def to_dynamo(value: Any) -> Any:
    """Convert floats (recursively) to Decimal, as boto3 refuses floats."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo(v) for v in value]
    return value

def from_dynamo(value: Any) -> Any:
    """Convert Decimal values (recursively) back to int or float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: from_dynamo(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo(v) for v in value]
    return value
