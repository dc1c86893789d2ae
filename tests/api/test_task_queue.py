"""Background task queue tests.

Verifies:
1. Completing a module enqueues one eligibility re-evaluation
2. The task carries the enrollment id the worker needs
3. QUEUE_DEPTH follows enqueue and dequeue
"""

from __future__ import annotations

import asyncio
from uuid import uuid4

from fastapi.testclient import TestClient

from app.core.metrics import QUEUE_DEPTH
from app.services.task_queue import ELIGIBILITY_QUEUE, InMemoryTaskQueue, task_queue


def _course_with_modules(client: TestClient, count: int):
    course = client.post(
        "/v1/courses", json={"slug": f"q-{uuid4().hex[:8]}", "title": "Queue"}
    ).json()
    modules = [
        client.post(f"/v1/courses/{course['id']}/modules", json={"title": f"M{i}"}).json()
        for i in range(count)
    ]
    enrollment = client.post(
        f"/v1/courses/{course['id']}/enrollments", json={"user_id": str(uuid4())}
    ).json()
    return modules, enrollment


def test_task_carries_enrollment_id(client: TestClient) -> None:
    modules, enrollment = _course_with_modules(client, 1)
    client.post(
        f"/v1/enrollments/{enrollment['id']}/modules/{modules[0]['id']}/complete"
    )

    task = asyncio.run(task_queue.dequeue(ELIGIBILITY_QUEUE))
    assert task is not None
    assert task.queue == ELIGIBILITY_QUEUE
    assert task.payload == {"enrollment_id": enrollment["id"]}


def test_queue_length_reflects_completions(client: TestClient) -> None:
    modules, enrollment = _course_with_modules(client, 3)
    for m in modules:
        client.post(f"/v1/enrollments/{enrollment['id']}/modules/{m['id']}/complete")

    assert asyncio.run(task_queue.queue_length(ELIGIBILITY_QUEUE)) == 3


def test_in_memory_queue_is_fifo_and_tracks_depth() -> None:
    queue = InMemoryTaskQueue()
    gauge = QUEUE_DEPTH.labels(queue_name="fifo-test")

    async def scenario():
        await queue.enqueue("fifo-test", {"n": 1})
        await queue.enqueue("fifo-test", {"n": 2})
        depth_after_enqueue = gauge._value.get()
        first = await queue.dequeue("fifo-test")
        depth_after_dequeue = gauge._value.get()
        return first, depth_after_enqueue, depth_after_dequeue

    first, full, drained = asyncio.run(scenario())
    assert first is not None and first.payload == {"n": 1}
    assert full == 2
    assert drained == 1


def test_dequeue_on_empty_queue_returns_none() -> None:
    assert asyncio.run(InMemoryTaskQueue().dequeue("nothing-here")) is None
