#!/usr/bin/env python3
"""Load test: concurrent certificate issuance for one enrollment.

RUN:  python scripts/load_test_issuance.py

Seeds a one-module course, completes it, then fires CONCURRENT_REQUESTS
simultaneous POST /v1/enrollments/{id}/certificate calls and checks that
every response carries the same certificate number.

Prerequisites:
  - The API must be running: uvicorn app.main:app --port 8000
  - Run it against Postgres (DATABASE_URL set) to exercise the unique
    constraint; the in-memory repos settle the race in-process.
"""

from __future__ import annotations

import asyncio
import sys
import time
from uuid import uuid4

import httpx

BASE_URL = "http://localhost:8000"
CONCURRENT_REQUESTS = 50


async def seed(client: httpx.AsyncClient) -> str:
    course = (
        await client.post(
            "/v1/courses",
            json={"slug": f"load-{uuid4().hex[:8]}", "title": "Load test course"},
        )
    ).json()
    module = (
        await client.post(
            f"/v1/courses/{course['id']}/modules", json={"title": "Only module"}
        )
    ).json()
    enrollment = (
        await client.post(
            f"/v1/courses/{course['id']}/enrollments", json={"user_id": str(uuid4())}
        )
    ).json()
    await client.post(
        f"/v1/enrollments/{enrollment['id']}/modules/{module['id']}/complete"
    )
    return enrollment["id"]


async def main() -> None:
    print("Concurrent Issuance Load Test")
    print("=" * 50)

    async with httpx.AsyncClient(base_url=BASE_URL, timeout=30) as client:
        enrollment_id = await seed(client)
        print(f"Enrollment: {enrollment_id}")
        print(f"Firing {CONCURRENT_REQUESTS} concurrent issue requests...")

        start = time.monotonic()
        responses = await asyncio.gather(
            *(
                client.post(f"/v1/enrollments/{enrollment_id}/certificate")
                for _ in range(CONCURRENT_REQUESTS)
            )
        )
        elapsed = time.monotonic() - start

    statuses: dict[int, int] = {}
    for r in responses:
        statuses[r.status_code] = statuses.get(r.status_code, 0) + 1
    numbers = {r.json()["certificate_number"] for r in responses if r.status_code == 200}

    print()
    print(f"Results ({elapsed:.2f}s):")
    print("─" * 40)
    for code, count in sorted(statuses.items()):
        print(f"  {code}: {count:>4}")
    print(f"  Distinct certificate numbers: {len(numbers)}")
    print()

    if statuses.get(200) == CONCURRENT_REQUESTS and len(numbers) == 1:
        print("Exactly one certificate was issued; every caller received it.")
    else:
        print("FAILURE: expected one certificate shared by all callers.")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
