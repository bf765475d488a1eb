"""Pipeline DAG: platform build nodes fanning in to the release join node.

The graph enforces:
- No node runs unless all prerequisites SUCCEEDED.
- When a node fails, every transitive dependent still pending is BLOCKED.
"""

from __future__ import annotations

from collections import deque

from shipwright.models.jobs import JobStatus, StageNode


class PrerequisiteNotMetError(RuntimeError):
    """Raised when a node cannot run because prerequisites have not succeeded."""


class CyclicDependencyError(ValueError):
    """Raised when the graph contains a cycle."""


class PipelineGraph:
    """Directed acyclic graph of pipeline nodes."""

    def __init__(self, nodes: list[StageNode]) -> None:
        self._nodes: dict[str, StageNode] = {n.node_id: n for n in nodes}
        self._prerequisites: dict[str, list[str]] = {
            n.node_id: list(n.prerequisites) for n in nodes
        }
        self._dependents: dict[str, list[str]] = {n.node_id: [] for n in nodes}
        for node in nodes:
            for prereq in node.prerequisites:
                if prereq not in self._nodes:
                    raise ValueError(
                        f"{node.node_id} depends on unknown node {prereq!r}"
                    )
                self._dependents[prereq].append(node.node_id)

        self._order = self._topological_order()

    def _topological_order(self) -> list[str]:
        """Kahn's algorithm; raises on cycles. Ties keep declaration order."""
        in_degree = {nid: len(p) for nid, p in self._prerequisites.items()}
        queue = deque(nid for nid in self._nodes if in_degree[nid] == 0)
        order: list[str] = []
        while queue:
            node = queue.popleft()
            order.append(node)
            for dep in self._dependents[node]:
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    queue.append(dep)

        if len(order) != len(self._nodes):
            raise CyclicDependencyError(
                f"Pipeline graph has a cycle. "
                f"Ordered {len(order)}/{len(self._nodes)} nodes."
            )
        return order

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def node_ids(self) -> list[str]:
        """All node ids in topological order."""
        return list(self._order)

    def node(self, node_id: str) -> StageNode:
        return self._nodes[node_id]

    def get_prerequisites(self, node_id: str) -> list[str]:
        return list(self._prerequisites.get(node_id, []))

    def get_dependents(self, node_id: str) -> list[str]:
        """All transitive dependents (BFS)."""
        result: list[str] = []
        queue = deque(self._dependents.get(node_id, []))
        visited: set[str] = set()
        while queue:
            nid = queue.popleft()
            if nid in visited:
                continue
            visited.add(nid)
            result.append(nid)
            queue.extend(self._dependents.get(nid, []))
        return result

    def are_prerequisites_met(
        self, node_id: str, states: dict[str, JobStatus]
    ) -> bool:
        return all(
            states.get(p) == JobStatus.SUCCEEDED
            for p in self._prerequisites.get(node_id, [])
        )

    def get_blocking_reasons(
        self, node_id: str, states: dict[str, JobStatus]
    ) -> list[str]:
        reasons = []
        for prereq in self._prerequisites.get(node_id, []):
            state = states.get(prereq, JobStatus.PENDING)
            if state != JobStatus.SUCCEEDED:
                reasons.append(f"{self._nodes[prereq].display_name} ({prereq}) is {state.value}")
        return reasons

    # ------------------------------------------------------------------
    # Cascade blocking
    # ------------------------------------------------------------------

    def cascade_block(
        self, failed_node_id: str, states: dict[str, JobStatus]
    ) -> list[str]:
        """Block every still-pending transitive dependent of a failed node.

        Mutates *states*; returns the newly blocked node ids.
        """
        blocked: list[str] = []
        for nid in self.get_dependents(failed_node_id):
            if states.get(nid, JobStatus.PENDING) == JobStatus.PENDING:
                states[nid] = JobStatus.BLOCKED
                blocked.append(nid)
        return blocked
