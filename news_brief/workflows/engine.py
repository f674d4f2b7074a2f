"""Durable step execution.

A workflow is an async function ``definition(params, step)``. Each side
effect it performs goes through ``step.do(name, fn, config)``, which runs
``fn`` under the step's retry/backoff/timeout policy and checkpoints the
result. When an instance is resumed after a crash, completed steps return
their checkpointed result instead of running again.
"""

import asyncio
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from news_brief.errors import StepFailedError
from news_brief.log_system.correlation import reset_correlation_id, set_correlation_id
from news_brief.log_system.unified_logger import UnifiedLogger
from news_brief.storage.workflow_store import (
    MISSING,
    STATUS_COMPLETE,
    STATUS_ERRORED,
    STATUS_RUNNING,
    WorkflowStore,
)
from news_brief.workflows.policies import DEFAULT_STEP, StepConfig


Sleep = Callable[[float], Awaitable[Any]]
StepFunction = Callable[[], Awaitable[Any]]


class WorkflowStep:
    """Step executor handed to a running workflow instance.

    Args:
        instance_id: Id of the running instance
        store: Checkpoint store
        sleep: Coroutine used between retries (replaced in tests)
    """

    def __init__(self, instance_id: str, store: WorkflowStore, sleep: Sleep = asyncio.sleep):
        self.instance_id = instance_id
        self._store = store
        self._sleep = sleep
        self._logger = UnifiedLogger.get_logger(__name__)

    async def do(
        self,
        name: str,
        fn: StepFunction,
        config: Optional[StepConfig] = None,
        default: Any = MISSING,
    ) -> Any:
        """Run a step once per instance.

        Args:
            name: Step name, unique within the workflow
            fn: Zero-argument coroutine function producing a JSON-serializable result
            config: Retry and timeout policy (DEFAULT_STEP if omitted)
            default: Result to checkpoint and return when all attempts fail;
                without it the failure is raised

        Returns:
            The step result, from the checkpoint if the step already completed

        Raises:
            StepFailedError: If every attempt failed and no default was given
        """
        checkpoint = await self._store.load_step(self.instance_id, name)
        if checkpoint is not MISSING:
            self._logger.info(f"Step '{name}' already completed, using checkpoint")
            return checkpoint

        config = config or DEFAULT_STEP
        policy = config.retries
        last_error: Optional[BaseException] = None

        for attempt in range(1, policy.attempts + 1):
            try:
                if config.timeout is not None:
                    result = await asyncio.wait_for(fn(), timeout=config.timeout)
                else:
                    result = await fn()
            except Exception as e:
                last_error = e
                self._logger.warning(
                    f"Step '{name}' attempt {attempt}/{policy.attempts} failed: {e!r}"
                )
                if attempt < policy.attempts:
                    await self._sleep(policy.delay_for(attempt))
                continue

            await self._store.save_step(self.instance_id, name, result)
            return result

        if default is not MISSING:
            self._logger.warning(f"Step '{name}' exhausted its retries, continuing with default")
            await self._store.save_step(self.instance_id, name, default)
            return default

        raise StepFailedError(name, policy.attempts, last_error) from last_error


WorkflowDefinition = Callable[[Dict[str, Any], WorkflowStep], Awaitable[Dict[str, Any]]]


class WorkflowInstance:
    """Handle on one stored workflow instance."""

    def __init__(self, binding: "WorkflowBinding", instance_id: str):
        self._binding = binding
        self.id = instance_id

    async def status(self) -> Dict[str, Any]:
        """Current status, output and error of the instance."""
        record = await self._binding.store.get_instance(self._binding.workflow_type, self.id)
        if record is None:
            return {"status": "unknown"}
        return {
            "status": record["status"],
            "output": record["output"],
            "error": record["error"],
            "created_at": record["created_at"],
            "updated_at": record["updated_at"],
        }


class WorkflowBinding:
    """Creates and runs instances of one workflow definition.

    Instances run as asyncio tasks in this process; their state and step
    checkpoints live in the workflow store, so unfinished instances can be
    resumed with ``resume_pending`` after a restart.

    Args:
        workflow_type: Name used to store and look up instances
        definition: The workflow function
        store: Workflow store shared with the step executor
        sleep: Coroutine used between step retries
    """

    def __init__(
        self,
        workflow_type: str,
        definition: WorkflowDefinition,
        store: WorkflowStore,
        sleep: Sleep = asyncio.sleep,
    ):
        self.workflow_type = workflow_type
        self.store = store
        self._definition = definition
        self._sleep = sleep
        self._tasks: Set[asyncio.Task] = set()
        self._logger = UnifiedLogger.get_logger(__name__)

    async def create(self, params: Optional[Dict[str, Any]] = None, instance_id: Optional[str] = None) -> WorkflowInstance:
        """Start one instance."""
        instances = await self.create_batch([{"id": instance_id, "params": params or {}}])
        return instances[0]

    async def create_batch(self, batch: List[Dict[str, Any]]) -> List[WorkflowInstance]:
        """Start many instances with a single store write.

        Ids that already exist are not started a second time, so the same
        batch submitted twice, or concurrently, runs each instance once. An
        existing instance that ended errored is queued again and resumes
        after its last completed step.

        Args:
            batch: Items of the form ``{"id": optional id, "params": dict}``

        Returns:
            Instance handles in the order of batch
        """
        if not batch:
            return []

        prepared = [
            (item.get("id") or str(uuid.uuid4()), item.get("params") or {})
            for item in batch
        ]
        inserted = set(await self.store.create_instances(self.workflow_type, prepared))
        requeued = set(await self.store.requeue_errored(
            self.workflow_type,
            [instance_id for instance_id, _ in prepared if instance_id not in inserted],
        ))

        for instance_id, params in prepared:
            if instance_id in inserted or instance_id in requeued:
                self._spawn(instance_id, params)

        self._logger.info(
            f"Started {len(inserted)} {self.workflow_type} instance(s), "
            f"requeued {len(requeued)}, "
            f"{len(prepared) - len(inserted) - len(requeued)} already running or done"
        )
        return [WorkflowInstance(self, instance_id) for instance_id, _ in prepared]

    async def get(self, instance_id: str) -> Optional[WorkflowInstance]:
        """Look up an instance by id, None if it does not exist."""
        record = await self.store.get_instance(self.workflow_type, instance_id)
        if record is None:
            return None
        return WorkflowInstance(self, instance_id)

    async def resume_pending(self) -> int:
        """Restart instances that were queued or running when the process stopped.

        Returns:
            Number of resumed instances
        """
        unfinished = await self.store.list_unfinished(self.workflow_type)
        for instance_id, params in unfinished:
            self._spawn(instance_id, params)
        if unfinished:
            self._logger.info(f"Resumed {len(unfinished)} {self.workflow_type} instance(s)")
        return len(unfinished)

    async def drain(self) -> None:
        """Wait until every instance started by this binding has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel(self) -> None:
        """Cancel running instances and wait until they have stopped.

        Cancelled instances keep their queued/running status and completed
        checkpoints, so ``resume_pending`` picks them up on the next start.
        """
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if tasks:
            self._logger.info(f"Cancelled {len(tasks)} {self.workflow_type} instance(s)")

    def _spawn(self, instance_id: str, params: Dict[str, Any]) -> None:
        task = asyncio.create_task(self._execute(instance_id, params))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _execute(self, instance_id: str, params: Dict[str, Any]) -> None:
        token = set_correlation_id(instance_id)
        try:
            await self.store.set_status(instance_id, STATUS_RUNNING)
            step = WorkflowStep(instance_id, self.store, sleep=self._sleep)
            try:
                output = await self._definition(params, step)
            except Exception as e:
                self._logger.exception(f"{self.workflow_type} instance {instance_id} failed: {e}")
                await self.store.set_status(instance_id, STATUS_ERRORED, error=str(e))
                return
            await self.store.set_status(instance_id, STATUS_COMPLETE, output=output)
            self._logger.info(f"{self.workflow_type} instance {instance_id} complete")
        finally:
            reset_correlation_id(token)
