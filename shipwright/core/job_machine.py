"""Job status state machine.

Enforces:
- Valid transitions only (VALID_TRANSITIONS table); a terminal status is
  set exactly once.
- Prerequisites checked before RUNNING (the release join node).
- Every transition recorded in the run ledger.

Safe to call from concurrently running job threads.
"""

from __future__ import annotations

import threading

from shipwright.core.pipeline_graph import PipelineGraph, PrerequisiteNotMetError
from shipwright.core.run_ledger import RunLedger
from shipwright.models.jobs import TERMINAL_STATUSES, VALID_TRANSITIONS, JobStatus
from shipwright.models.ledger import LedgerEntry


class InvalidTransitionError(RuntimeError):
    """Raised when a requested status transition is not valid."""


class JobStateMachine:
    """Tracks node statuses of one run.

    Parameters
    ----------
    ledger:
        The run ledger to record transitions into.
    graph:
        The pipeline graph for prerequisite checking.
    run_id:
        The run whose nodes this machine tracks.
    commit_sha:
        Recorded on every ledger entry.
    """

    def __init__(
        self,
        ledger: RunLedger,
        graph: PipelineGraph,
        run_id: str,
        *,
        commit_sha: str = "",
    ) -> None:
        self._ledger = ledger
        self._graph = graph
        self._run_id = run_id
        self._commit_sha = commit_sha
        self._states: dict[str, JobStatus] = {
            nid: JobStatus.PENDING for nid in graph.node_ids
        }
        self._lock = threading.RLock()

    @property
    def run_id(self) -> str:
        return self._run_id

    def status(self, node_id: str) -> JobStatus:
        with self._lock:
            return self._states[node_id]

    def snapshot(self) -> dict[str, JobStatus]:
        with self._lock:
            return dict(self._states)

    def transition(
        self,
        node_id: str,
        target: JobStatus,
        *,
        input_hash: str = "",
        output_hash: str = "",
        artifact_references: list[str] | None = None,
        detail: str = "",
    ) -> LedgerEntry:
        """Move a node to *target*, recording the transition in the ledger."""
        with self._lock:
            current = self._states[node_id]
            allowed = VALID_TRANSITIONS.get(current, set())
            if target not in allowed:
                raise InvalidTransitionError(
                    f"Cannot transition {node_id} from {current.value} to {target.value}. "
                    f"Allowed: {sorted(s.value for s in allowed)}"
                )

            if target == JobStatus.RUNNING and not self._graph.are_prerequisites_met(
                node_id, self._states
            ):
                reasons = self._graph.get_blocking_reasons(node_id, self._states)
                raise PrerequisiteNotMetError(
                    f"Cannot start {node_id}: {'; '.join(reasons)}"
                )

            sealed = self._ledger.append(
                LedgerEntry(
                    run_id=self._run_id,
                    node_id=node_id,
                    state_transition=f"{current.value}->{target.value}",
                    input_hash=input_hash,
                    output_hash=output_hash,
                    artifact_references=artifact_references or [],
                    detail=detail,
                    commit_sha=self._commit_sha,
                )
            )
            self._states[node_id] = target
            return sealed

    def cascade_block(self, failed_node_id: str) -> list[str]:
        """Block the still-pending dependents of a failed node."""
        with self._lock:
            candidates = dict(self._states)
            blocked = self._graph.cascade_block(failed_node_id, candidates)
            for nid in blocked:
                self.transition(
                    nid,
                    JobStatus.BLOCKED,
                    detail="; ".join(self._graph.get_blocking_reasons(nid, self._states)),
                )
            return blocked

    def all_terminal(self, node_ids: list[str]) -> bool:
        with self._lock:
            return all(self._states[n] in TERMINAL_STATUSES for n in node_ids)

    def all_succeeded(self, node_ids: list[str]) -> bool:
        with self._lock:
            return all(self._states[n] == JobStatus.SUCCEEDED for n in node_ids)
