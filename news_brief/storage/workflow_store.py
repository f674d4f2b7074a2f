"""Persistence for workflow instances and step checkpoints.

Step results are stored as JSON per (instance, step name); a step with a
stored result is never executed again for that instance.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiosqlite


# Returned by load_step when the step has no checkpoint
MISSING = object()

STATUS_QUEUED = "queued"
STATUS_RUNNING = "running"
STATUS_COMPLETE = "complete"
STATUS_ERRORED = "errored"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class WorkflowStore:
    """Reads and writes the ``workflow_instances`` and ``workflow_steps`` tables."""

    def __init__(self, db: aiosqlite.Connection):
        self._db = db

    async def create_instances(self, workflow_type: str, instances: List[Tuple[str, Dict[str, Any]]]) -> List[str]:
        """Insert queued instances in a single transaction.

        Ids that are already stored are left untouched. Each insert is
        atomic, so when concurrent callers submit the same id exactly one
        of them gets it back.

        Args:
            workflow_type: Name of the workflow binding
            instances: (instance_id, params) pairs

        Returns:
            Ids that were inserted by this call, in input order
        """
        now = _now()
        inserted = []
        try:
            for instance_id, params in instances:
                cursor = await self._db.execute(
                    """
                    INSERT OR IGNORE INTO workflow_instances
                        (id, workflow_type, params, status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (instance_id, workflow_type, json.dumps(params), STATUS_QUEUED, now, now),
                )
                if cursor.rowcount == 1:
                    inserted.append(instance_id)
                await cursor.close()
            await self._db.commit()
        except aiosqlite.Error:
            await self._db.rollback()
            raise
        return inserted

    async def requeue_errored(self, workflow_type: str, instance_ids: List[str]) -> List[str]:
        """Move errored instances back to queued so they can run again.

        Step checkpoints are kept, so a requeued instance resumes after its
        last completed step.

        Returns:
            Ids that were errored and are now queued
        """
        requeued = []
        for instance_id in instance_ids:
            cursor = await self._db.execute(
                """
                UPDATE workflow_instances
                SET status = ?, error = NULL, updated_at = ?
                WHERE id = ? AND workflow_type = ? AND status = ?
                """,
                (STATUS_QUEUED, _now(), instance_id, workflow_type, STATUS_ERRORED),
            )
            if cursor.rowcount == 1:
                requeued.append(instance_id)
            await cursor.close()
        await self._db.commit()
        return requeued

    async def set_status(
        self,
        instance_id: str,
        status: str,
        output: Any = None,
        error: Optional[str] = None,
    ) -> None:
        await self._db.execute(
            """
            UPDATE workflow_instances
            SET status = ?, output = ?, error = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                status,
                json.dumps(output) if output is not None else None,
                error,
                _now(),
                instance_id,
            ),
        )
        await self._db.commit()

    async def get_instance(self, workflow_type: str, instance_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored instance row as a dict, or None if unknown."""
        cursor = await self._db.execute(
            """
            SELECT id, workflow_type, params, status, output, error, created_at, updated_at
            FROM workflow_instances
            WHERE id = ? AND workflow_type = ?
            """,
            (instance_id, workflow_type),
        )
        row = await cursor.fetchone()
        await cursor.close()

        if row is None:
            return None

        return {
            "id": row[0],
            "workflow_type": row[1],
            "params": json.loads(row[2]),
            "status": row[3],
            "output": json.loads(row[4]) if row[4] is not None else None,
            "error": row[5],
            "created_at": row[6],
            "updated_at": row[7],
        }

    async def list_unfinished(self, workflow_type: str) -> List[Tuple[str, Dict[str, Any]]]:
        """Instances left queued or running, oldest first."""
        cursor = await self._db.execute(
            """
            SELECT id, params FROM workflow_instances
            WHERE workflow_type = ? AND status IN (?, ?)
            ORDER BY created_at, id
            """,
            (workflow_type, STATUS_QUEUED, STATUS_RUNNING),
        )
        unfinished = []
        async for row in cursor:
            unfinished.append((row[0], json.loads(row[1])))
        await cursor.close()
        return unfinished

    async def load_step(self, instance_id: str, step_name: str) -> Any:
        """Return the checkpointed result of a step, or MISSING."""
        cursor = await self._db.execute(
            "SELECT output FROM workflow_steps WHERE instance_id = ? AND step_name = ?",
            (instance_id, step_name),
        )
        row = await cursor.fetchone()
        await cursor.close()

        if row is None:
            return MISSING
        return json.loads(row[0])

    async def save_step(self, instance_id: str, step_name: str, output: Any) -> None:
        """Checkpoint a completed step. A second save for the same step is ignored."""
        await self._db.execute(
            """
            INSERT OR IGNORE INTO workflow_steps (instance_id, step_name, output, completed_at)
            VALUES (?, ?, ?, ?)
            """,
            (instance_id, step_name, json.dumps(output), _now()),
        )
        await self._db.commit()
