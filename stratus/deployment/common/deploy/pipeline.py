from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from stratus.deployment.common.deploy.hooks import call_rollback_hooks

if TYPE_CHECKING:
    from stratus.deployment.common.deploy.build_state import BuildState

logger = logging.getLogger(__name__)


class ExecutionContext:
    """
    Carries cancellation and the optional deadline of a pipeline run.

    The pipeline never preempts an operation, operations are expected to call `raise_if_cancelled`
    before every remote call or other long running step.
    """

    def __init__(self, deadline: Optional[float] = None) -> None:
        self._cancel_event = threading.Event()
        self.deadline = deadline

    @classmethod
    def with_timeout(cls, timeout_seconds: float) -> ExecutionContext:
        return cls(deadline=time.monotonic() + timeout_seconds)

    def cancel(self) -> None:
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        if self._cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise OperationCancelledError("The workflow was cancelled or exceeded its deadline")


class Operation(ABC):
    @abstractmethod
    def invoke(self, ctx: ExecutionContext) -> None:
        raise NotImplementedError()

    def rollback(self, ctx: ExecutionContext) -> None:  # pylint: disable=unused-argument
        return None


class Stage:
    def __init__(self) -> None:
        self.operations: list[tuple[str, Operation]] = []

    def append(self, name: str, operation: Operation) -> Stage:
        self.operations.append((name, operation))
        return self

    def __len__(self) -> int:
        return len(self.operations)


class Pipeline:
    """
    Ordered stages sharing one build state.

    Stages run in declaration order and so do the operations of a stage. The first failing operation
    aborts the run, every operation that completed before it is rolled back in reverse completion
    order, followed by the user rollback hooks in reverse registration order.
    """

    def __init__(self, build_state: BuildState) -> None:
        self.build_state = build_state
        self.stages: list[tuple[str, Stage]] = []
        self.completed_operations: list[tuple[str, Operation]] = []

    def append(self, name: str, stage: Stage) -> Pipeline:
        self.stages.append((name, stage))
        return self

    def run(self, ctx: ExecutionContext, name: str) -> None:
        self.completed_operations = []
        start_time = time.time()
        for stage_name, stage in self.stages:
            stage_start_time = time.time()
            for operation_name, operation in stage.operations:
                logger.debug("Running %s operation %s.%s", name, stage_name, operation_name)
                try:
                    operation.invoke(ctx)
                except Exception as e:  # pylint: disable=broad-except
                    logger.error("%s operation %s.%s failed: %s", name, stage_name, operation_name, e)
                    rollback_errors = self._rollback(ctx)
                    raise PipelineError(name, stage_name, operation_name, e, rollback_errors) from e
                self.completed_operations.append((f"{stage_name}.{operation_name}", operation))
            logger.info("%s stage %s complete (%.2fs)", name, stage_name, time.time() - stage_start_time)
        logger.info("%s complete (%.2fs)", name, time.time() - start_time)

    def _rollback(self, ctx: ExecutionContext) -> list[Exception]:
        rollback_errors: list[Exception] = []
        for operation_name, operation in reversed(self.completed_operations):
            logger.info("Rolling back %s", operation_name)
            try:
                operation.rollback(ctx)
            except Exception as e:  # pylint: disable=broad-except
                logger.warning("Failed to roll back %s: %s", operation_name, e)
                rollback_errors.append(e)
        rollback_errors.extend(call_rollback_hooks(self.build_state))
        return rollback_errors


class PipelineError(Exception):
    def __init__(
        self,
        pipeline_name: str,
        stage_name: str,
        operation_name: str,
        cause: Exception,
        rollback_errors: list[Exception],
    ) -> None:
        self.pipeline_name = pipeline_name
        self.stage_name = stage_name
        self.operation_name = operation_name
        self.cause = cause
        self.rollback_errors = rollback_errors
        message = f"{pipeline_name} failed in {stage_name}.{operation_name}: {cause}"
        if rollback_errors:
            message += "\nRollback errors:\n" + "\n".join(f"  {error}" for error in rollback_errors)
        super().__init__(message)


class OperationCancelledError(Exception):
    pass
