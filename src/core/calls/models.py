"""
Domain models for group call bookkeeping.

A group is a stable, externally assigned identifier. Each time a call starts
for a group a new call instance ("era") is created with a fresh call_id.
These models have no dependencies on boto3 or any storage format; the
translation to DynamoDB items lives in the infrastructure layer.
"""

from dataclasses import dataclass, fields
from uuid import uuid4


def generate_call_id() -> str:
    """Random identifier for a new call instance of a group."""
    return uuid4().hex


@dataclass(frozen=True)
class CallRecord:
    """
    The call instance currently running for a group.

    Frozen because records are replaced, never updated in place: a move to
    another backend is a remove followed by an add with a new call_id.
    """
    group_id: str        # The group the client is authorized to join
    call_id: str         # The era of the group's call
    backend_host: str    # Address of the Calling Server hosting the call
    backend_region: str  # Region of that server, indexed for region scans
    creator: str         # User that created the call

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"CallRecord.{f.name} must be a non-empty string")

    @classmethod
    def new(
        cls,
        group_id: str,
        backend_host: str,
        backend_region: str,
        creator: str,
    ) -> "CallRecord":
        """Build a record for a brand new call instance of the group."""
        return cls(
            group_id=group_id,
            call_id=generate_call_id(),
            backend_host=backend_host,
            backend_region=backend_region,
            creator=creator,
        )
