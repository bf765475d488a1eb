"""Abstract base stage with an enforced lifecycle.

Every concrete stage implements only ``execute()``. ``run_stage()`` is not
overridable and always runs::

    compute_input_hash -> execute -> compute_output_hash

so every stage run carries the input/output hashes the coordinator writes
into the run ledger, regardless of subclass behaviour.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, final

from shipwright.core.hasher import compute_input_hash, compute_output_hash

logger = logging.getLogger(__name__)


class StageExecutionError(RuntimeError):
    """Raised when a stage's execute() method fails.

    The original exception is kept as ``__cause__``.
    """


class BaseStage(abc.ABC):
    """Abstract base for pipeline stages.

    Subclasses **must** implement:
        * ``node_id``: the pipeline graph node this stage runs as.
        * ``display_name``: shown in the job table.
        * ``execute(run_context)``: the stage's core logic.

    Subclasses **may** override ``describe_inputs()`` to add stage-specific
    inputs to the input hash.

    Result keys starting with ``_`` carry typed objects for the coordinator
    and are excluded from the output hash.
    """

    @property
    @abc.abstractmethod
    def node_id(self) -> str:
        ...

    @property
    @abc.abstractmethod
    def display_name(self) -> str:
        ...

    @abc.abstractmethod
    def execute(self, run_context: dict[str, Any]) -> dict[str, Any]:
        """Run the stage.

        Parameters
        ----------
        run_context:
            Run-wide inputs: ``run_id``, ``event``, ``config``, ``settings``,
            ``runner``, stores, directories and prior outcomes.
        """
        ...

    def describe_inputs(self, run_context: dict[str, Any]) -> dict[str, Any]:
        return {}

    # ------------------------------------------------------------------
    # Lifecycle: NOT overridable
    # ------------------------------------------------------------------

    @final
    def run_stage(self, run_context: dict[str, Any]) -> dict[str, Any]:
        """Execute the full stage lifecycle. **Do not override.**

        Returns the ``execute()`` result augmented with ``_input_hash`` and
        ``_output_hash``.
        """
        input_hash = self._compute_input_hash(run_context)
        logger.info("%s [%s] input_hash=%s", self.display_name, self.node_id, input_hash[:12])

        try:
            result = self.execute(run_context)
        except Exception as exc:
            logger.error("%s [%s] failed: %s", self.display_name, self.node_id, exc)
            raise StageExecutionError(f"{self.display_name} failed: {exc}") from exc

        output_hash = self._compute_output_hash(result)
        logger.info("%s [%s] output_hash=%s", self.display_name, self.node_id, output_hash[:12])

        result["_input_hash"] = input_hash
        result["_output_hash"] = output_hash
        return result

    @final
    def _compute_input_hash(self, run_context: dict[str, Any]) -> str:
        event = run_context.get("event")
        inputs: dict[str, Any] = {
            "run_id": run_context.get("run_id", ""),
            "ref": getattr(event, "ref", ""),
            "sha": getattr(event, "sha", ""),
            **self.describe_inputs(run_context),
        }
        return compute_input_hash(self.node_id, inputs)

    @final
    def _compute_output_hash(self, result: dict[str, Any]) -> str:
        hashable = {k: v for k, v in result.items() if not k.startswith("_")}
        return compute_output_hash(self.node_id, hashable)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} node_id={self.node_id!r}>"
