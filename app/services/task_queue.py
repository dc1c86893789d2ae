"""Background task queue using Redis lists.

Completing a module should trigger an eligibility re-evaluation, but the
learner's request must not wait for it.  The tracker enqueues a task
(LPUSH, sub-millisecond) and returns; `python -m app.worker` pops tasks
(BRPOP) and evaluates them at its own pace.

  Producer (API):    LPUSH onto tasks:<queue>
  Consumer (worker): BRPOP from the tail  → FIFO order

Delivery is at-most-once: a worker that dies mid-task drops that task.
That is acceptable here because re-evaluation is advisory.  Eligibility
is recomputed from stored records on every `evaluate`/`issue` call, so a
lost task never loses a certificate.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from app.core.metrics import QUEUE_DEPTH
from app.db.redis import redis_pool

ELIGIBILITY_QUEUE = "eligibility_evaluation"


@dataclass(frozen=True, slots=True)
class Task:
    """A unit of background work.

    id:      identifier for tracking and logging.
    queue:   queue name, one handler per queue in the worker.
    payload: JSON-serializable data the handler needs.
    """

    id: str
    queue: str
    payload: dict


@runtime_checkable
class TaskQueue(Protocol):
    async def enqueue(self, queue: str, payload: dict) -> Task: ...
    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None: ...
    async def queue_length(self, queue: str) -> int: ...


class InMemoryTaskQueue:
    """In-memory task queue for tests and single-process dev runs."""

    def __init__(self) -> None:
        self._queues: dict[str, list[Task]] = {}

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(id=str(uuid.uuid4()), queue=queue, payload=payload)
        pending = self._queues.setdefault(queue, [])
        pending.append(task)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(pending))
        return task

    async def dequeue(self, queue: str, timeout: int = 0) -> Task | None:
        tasks = self._queues.get(queue, [])
        if not tasks:
            return None
        task = tasks.pop(0)
        QUEUE_DEPTH.labels(queue_name=queue).set(len(tasks))
        return task

    async def queue_length(self, queue: str) -> int:
        return len(self._queues.get(queue, []))


class RedisTaskQueue:
    """Redis-backed task queue using LPUSH/BRPOP."""

    _PREFIX = "tasks:"

    def __init__(self, redis_client) -> None:
        self._redis = redis_client

    async def enqueue(self, queue: str, payload: dict) -> Task:
        task = Task(id=str(uuid.uuid4()), queue=queue, payload=payload)
        task_json = json.dumps(
            {
                "id": task.id,
                "queue": task.queue,
                "payload": task.payload,
            }
        )
        depth = await self._redis.lpush(f"{self._PREFIX}{queue}", task_json)
        QUEUE_DEPTH.labels(queue_name=queue).set(depth)
        return task

    async def dequeue(self, queue: str, timeout: int = 5) -> Task | None:
        result = await self._redis.brpop(f"{self._PREFIX}{queue}", timeout=timeout)
        if result is None:
            return None
        _, task_json = result
        data = json.loads(task_json)
        return Task(**data)

    async def queue_length(self, queue: str) -> int:
        return await self._redis.llen(f"{self._PREFIX}{queue}")


if redis_pool is not None:
    task_queue: TaskQueue = RedisTaskQueue(redis_pool)
else:
    task_queue = InMemoryTaskQueue()
