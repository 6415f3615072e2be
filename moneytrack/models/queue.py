"""
Offline Queue Models

A QueuedOperation is a mutation waiting to be replayed against storage.
It is removed only after a confirmed successful replay; failures are
recorded on the operation itself so nothing is lost silently.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from moneytrack.models.finance import Collection, new_id, utc_now


class OperationKind(str, Enum):
    """Mutation kinds that can be queued."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class QueuedOperation(BaseModel):
    """
    A pending mutation awaiting replay.

    IDEMPOTENCY: `document_id` is fixed when the operation is enqueued and
    every replay writes to that id, so replaying the same operation twice
    leaves storage in the same state as replaying it once.
    """
    model_config = ConfigDict(use_enum_values=False)

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Caller-assigned unique operation id"
    )
    kind: OperationKind
    collection: Collection
    document_id: str = Field(
        default="",
        description="Target document; defaults to the operation id for creates"
    )
    payload: dict[str, Any] = Field(default_factory=dict)
    enqueued_at: datetime = Field(default_factory=utc_now)
    retry_count: int = Field(default=0, ge=0)
    last_error: Optional[str] = None

    @model_validator(mode='after')
    def resolve_document_id(self) -> 'QueuedOperation':
        """Creates target the payload id, or the operation id; others need an id."""
        if not self.document_id:
            payload_id = self.payload.get("id")
            if payload_id:
                self.document_id = str(payload_id)
            elif self.kind == OperationKind.CREATE:
                self.document_id = self.id
            else:
                raise ValueError(f"{self.kind.value} operation requires a document id")
        return self

    def is_parked(self, max_failures: int) -> bool:
        """Failed too many times in a row; waits for a manual retry."""
        return self.retry_count >= max_failures


class DrainReport(BaseModel):
    """Outcome of one queue drain."""

    started_at: datetime = Field(default_factory=utc_now)
    succeeded: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    parked: list[str] = Field(
        default_factory=list,
        description="Operations that reached the failure limit during this drain"
    )
    skipped: list[str] = Field(
        default_factory=list,
        description="Parked operations left out of an automatic drain"
    )

    @property
    def attempted(self) -> int:
        return len(self.succeeded) + len(self.failed)
