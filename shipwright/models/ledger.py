"""Run ledger entry model (append-only, hash-chained).

One entry per status transition of a pipeline node. The ledger is the
audit trail of a run: which jobs ran, how they ended, and what they
produced.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class LedgerEntry(BaseModel):
    """A single entry in the append-only run ledger."""

    model_config = ConfigDict(frozen=True)

    entry_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    run_id: str
    node_id: str
    state_transition: str  # "from->to", e.g. "pending->running"
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    input_hash: str = ""
    output_hash: str = ""
    artifact_references: list[str] = []  # content addresses
    detail: str = ""  # error text for failures, block reasons for joins
    commit_sha: str = ""
    previous_entry_hash: str = ""
    entry_hash: str = ""  # computed on append, seals this entry
