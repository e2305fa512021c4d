"""
DynamoDB persistence for group call records.

Includes mock mode for local development without AWS credentials.
"""

from .client import (
    CallRecordStore,
    DynamoDBCallRecordStore,
    DynamoDBConfig,
    MockCallRecordStore,
    StorageError,
    create_call_record_store,
)

__all__ = [
    "CallRecordStore",
    "DynamoDBCallRecordStore",
    "DynamoDBConfig",
    "MockCallRecordStore",
    "StorageError",
    "create_call_record_store",
]
