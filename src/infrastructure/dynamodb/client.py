"""
DynamoDB storage for group call records.

One table holds at most one call record per group, keyed by the group id,
with a global secondary index on the backend region. All coordination
between frontends happens inside DynamoDB through conditional writes:
- Creating a call is a put that only succeeds if the group has no record.
- Removing a call is a delete that only succeeds if the call_id still matches.

Mock mode stores records in memory with the same semantics, enabling API
testing without provisioning a table.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import boto3
from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ...core.calls.models import CallRecord

logger = logging.getLogger(__name__)

GROUP_ID_ATTRIBUTE = "groupConferenceId"
CALL_ID_ATTRIBUTE = "jvbConferenceId"
REGION_ATTRIBUTE = "region"

# Field name on CallRecord -> attribute name in the table
ITEM_ATTRIBUTES = {
    "group_id": GROUP_ID_ATTRIBUTE,
    "call_id": CALL_ID_ATTRIBUTE,
    "backend_host": "jvbHost",
    "backend_region": REGION_ATTRIBUTE,
    "creator": "creator",
}

# Local DynamoDB accepts any keys, but botocore refuses to sign without some.
DUMMY_ACCESS_KEY_ID = "DUMMY_KEY"
DUMMY_SECRET_ACCESS_KEY = "DUMMY_PASSWORD"

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class DynamoDBConfig:
    """
    Configuration for the call record table.

    Setting endpoint_url points the client at a local DynamoDB with dummy
    credentials. Otherwise the default AWS credential chain is used, which
    reads the web identity token file kept fresh by the IdentityFetcher.
    """
    table_name: str
    region: str
    region_index: str = "region-index"
    endpoint_url: Optional[str] = None
    max_attempts: int = 4


class CallRecordStore(Protocol):
    """
    Protocol for call record storage.

    Using a protocol means tests can provide the in-memory store and
    the API never depends on boto3 directly.
    """

    async def get_call_record(self, group_id: str) -> Optional[CallRecord]:
        """Get the call for the group, or None if there is none."""
        ...

    async def get_or_add_call_record(self, record: CallRecord) -> Optional[CallRecord]:
        """Add the call unless the group already has one; return the group's call."""
        ...

    async def remove_call_record(self, group_id: str, call_id: str) -> None:
        """Remove the group's call if it is still the given call_id."""
        ...

    async def get_call_records_for_region(self, region: str) -> list[CallRecord]:
        """Return all calls hosted in the given region."""
        ...


# ---------------------------------------------------------------------------
# Item Conversion
# ---------------------------------------------------------------------------

def call_record_to_item(record: CallRecord) -> dict[str, Any]:
    """Convert a CallRecord into a DynamoDB attribute map."""
    return {
        attribute: _serializer.serialize(getattr(record, field_name))
        for field_name, attribute in ITEM_ATTRIBUTES.items()
    }


def call_record_from_item(item: dict[str, Any]) -> CallRecord:
    """
    Convert a DynamoDB attribute map into a CallRecord.

    Items that are missing attributes or hold non-string values are
    corrupt; they raise StorageError rather than being skipped.
    """
    try:
        values = {
            field_name: _deserializer.deserialize(item[attribute])
            for field_name, attribute in ITEM_ATTRIBUTES.items()
        }
        return CallRecord(**values)
    except (KeyError, TypeError, ValueError) as e:
        raise StorageError(f"Failed to convert item to CallRecord: {e!r}") from e


def _is_conditional_check_failed(error: ClientError) -> bool:
    return error.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException"


class DynamoDBCallRecordStore:
    """
    Call record store backed by a DynamoDB table.

    boto3 is synchronous, so every SDK call runs in a worker thread via
    asyncio.to_thread. Each operation is a single round trip; nothing is
    cached between calls, the table is the only source of truth.
    """

    def __init__(self, config: DynamoDBConfig, client: Any = None) -> None:
        """
        Initialize the store.

        Args:
            config: Table and connection configuration
            client: Pre-built DynamoDB client (tests pass a stubbed one)
        """
        self._config = config

        if client is None:
            client = self._create_client(config)
        self._client = client

        logger.info(
            "Initialized DynamoDB call record store",
            extra={
                "table": config.table_name,
                "region": config.region,
                "endpoint": config.endpoint_url,
            }
        )

    @staticmethod
    def _create_client(config: DynamoDBConfig) -> Any:
        boto_config = Config(
            region_name=config.region,
            retries={
                "max_attempts": config.max_attempts,
                "mode": "standard",
            },
        )

        if config.endpoint_url:
            logger.info(
                "Using endpoint for DynamoDB testing",
                extra={"endpoint": config.endpoint_url}
            )
            return boto3.client(
                "dynamodb",
                endpoint_url=config.endpoint_url,
                aws_access_key_id=DUMMY_ACCESS_KEY_ID,
                aws_secret_access_key=DUMMY_SECRET_ACCESS_KEY,
                config=boto_config,
            )

        logger.info(
            "Using region for DynamoDB access",
            extra={"region": config.region}
        )
        return boto3.client("dynamodb", config=boto_config)

    async def get_call_record(self, group_id: str) -> Optional[CallRecord]:
        """Strongly consistent lookup of the group's call."""
        try:
            response = await asyncio.to_thread(
                self._client.get_item,
                TableName=self._config.table_name,
                Key={GROUP_ID_ATTRIBUTE: {"S": group_id}},
                ConsistentRead=True,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(
                "Failed to get call record",
                extra={"group_id": group_id, "error": str(e)}
            )
            raise StorageError(f"Failed to get_item from storage: {e}") from e

        item = response.get("Item")
        if item is None:
            return None

        return call_record_from_item(item)

    async def get_or_add_call_record(self, record: CallRecord) -> Optional[CallRecord]:
        """
        Add the call for its group, or return the call that is already there.

        The put is conditional on the group having no record. When the
        condition fails another frontend won the race, so we read back
        its record instead of retrying. The result is None only if that
        winner was removed again before the read.
        """
        try:
            await asyncio.to_thread(
                self._client.put_item,
                TableName=self._config.table_name,
                Item=call_record_to_item(record),
                # Don't overwrite the item if it already exists.
                ConditionExpression=f"attribute_not_exists({GROUP_ID_ATTRIBUTE})",
            )
        except ClientError as e:
            if not _is_conditional_check_failed(e):
                logger.error(
                    "Failed to add call record",
                    extra={"group_id": record.group_id, "error": str(e)}
                )
                raise StorageError(f"Failed to put_item to storage: {e}") from e

            logger.debug(
                "Call already exists for group",
                extra={"group_id": record.group_id, "call_id": record.call_id}
            )
            return await self.get_call_record(record.group_id)
        except BotoCoreError as e:
            logger.error(
                "Failed to add call record",
                extra={"group_id": record.group_id, "error": str(e)}
            )
            raise StorageError(f"Failed to put_item to storage: {e}") from e

        logger.info(
            "Added call record",
            extra={
                "group_id": record.group_id,
                "call_id": record.call_id,
                "region": record.backend_region,
            }
        )
        return record

    async def remove_call_record(self, group_id: str, call_id: str) -> None:
        """
        Remove the group's call, but only if it is still the given call_id.

        If the condition fails the call was already removed and possibly
        replaced by a newer one, which is left alone.
        """
        try:
            await asyncio.to_thread(
                self._client.delete_item,
                TableName=self._config.table_name,
                Key={GROUP_ID_ATTRIBUTE: {"S": group_id}},
                ConditionExpression=f"{CALL_ID_ATTRIBUTE} = :value",
                ExpressionAttributeValues={":value": {"S": call_id}},
            )
        except ClientError as e:
            if _is_conditional_check_failed(e):
                logger.debug(
                    "Call record already gone or replaced",
                    extra={"group_id": group_id, "call_id": call_id}
                )
                return
            logger.error(
                "Failed to remove call record",
                extra={"group_id": group_id, "call_id": call_id, "error": str(e)}
            )
            raise StorageError(f"Failed to delete_item from storage: {e}") from e
        except BotoCoreError as e:
            logger.error(
                "Failed to remove call record",
                extra={"group_id": group_id, "call_id": call_id, "error": str(e)}
            )
            raise StorageError(f"Failed to delete_item from storage: {e}") from e

        logger.info(
            "Removed call record",
            extra={"group_id": group_id, "call_id": call_id}
        )

    async def get_call_records_for_region(self, region: str) -> list[CallRecord]:
        """
        Query the region index for every call hosted in the region.

        Index reads are eventually consistent. Used for maintenance and
        aggregate views, never for deciding which call a group is in.
        """
        params: dict[str, Any] = {
            "TableName": self._config.table_name,
            "IndexName": self._config.region_index,
            "KeyConditionExpression": "#region = :value",
            "ExpressionAttributeNames": {"#region": REGION_ATTRIBUTE},
            "ExpressionAttributeValues": {":value": {"S": region}},
            "ConsistentRead": False,
            "Select": "ALL_ATTRIBUTES",
        }

        records: list[CallRecord] = []
        while True:
            try:
                response = await asyncio.to_thread(self._client.query, **params)
            except (BotoCoreError, ClientError) as e:
                logger.error(
                    "Failed to query calls in region",
                    extra={"region": region, "error": str(e)}
                )
                raise StorageError(f"Failed to query for calls in a region: {e}") from e

            records.extend(call_record_from_item(item) for item in response.get("Items", []))

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            params["ExclusiveStartKey"] = last_key

        return records


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockCallRecordStore:
    """
    In-memory call record store for local development and tests.

    Every check-and-mutate below runs without an await in between, so on a
    single event loop it is as atomic as DynamoDB's conditional writes.
    """

    def __init__(self) -> None:
        # {group_id: CallRecord}
        self._records: dict[str, CallRecord] = {}
        logger.info("Initialized mock call record store (in-memory)")

    async def get_call_record(self, group_id: str) -> Optional[CallRecord]:
        return self._records.get(group_id)

    async def get_or_add_call_record(self, record: CallRecord) -> Optional[CallRecord]:
        existing = self._records.setdefault(record.group_id, record)

        logger.debug(
            "Stored call in mock storage" if existing is record else "Call already in mock storage",
            extra={"group_id": record.group_id, "call_id": existing.call_id}
        )

        return existing

    async def remove_call_record(self, group_id: str, call_id: str) -> None:
        existing = self._records.get(group_id)
        if existing is not None and existing.call_id == call_id:
            del self._records[group_id]

    async def get_call_records_for_region(self, region: str) -> list[CallRecord]:
        return [
            record for record in self._records.values()
            if record.backend_region == region
        ]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_call_record_store(
    config: Optional[DynamoDBConfig] = None,
    mock_mode: bool = False,
) -> CallRecordStore:
    """
    Create call record store based on configuration.

    Args:
        config: Table configuration (required if not mock_mode)
        mock_mode: If True, return in-memory store for testing

    Returns:
        CallRecordStore implementation (DynamoDB or Mock)
    """
    if mock_mode:
        return MockCallRecordStore()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return DynamoDBCallRecordStore(config)
