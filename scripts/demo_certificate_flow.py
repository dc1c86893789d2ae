"""Demo: walk a learner from enrollment to a verified certificate.

Run with:
    python scripts/demo_certificate_flow.py
"""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from app.main import app


def main() -> None:
    client = TestClient(app)
    learner = str(uuid4())

    # ── Seed a three-module course ───────────────────────────────────
    r = client.post(
        "/v1/courses",
        json={
            "slug": f"demo-{uuid4().hex[:8]}",
            "title": "Bookkeeping for Nonprofits",
            "category": "finance",
            "workload_hours": 12,
            "policy": {"kind": "module_percentage", "pass_threshold": 100},
        },
    )
    course = r.json()
    print(f"1. POST /v1/courses                 → {r.status_code}  ({course['slug']})")

    modules = [
        client.post(
            f"/v1/courses/{course['id']}/modules", json={"title": f"Module {i}"}
        ).json()
        for i in (1, 2, 3)
    ]
    print(f"2. POST /v1/courses/…/modules ×3    → {len(modules)} modules")

    r = client.post(
        f"/v1/courses/{course['id']}/enrollments", json={"user_id": learner}
    )
    enrollment = r.json()
    print(f"3. POST /v1/courses/…/enrollments   → {r.status_code}")
    base = f"/v1/enrollments/{enrollment['id']}"

    # ── Progress ─────────────────────────────────────────────────────
    for m in modules[:2]:
        client.post(f"{base}/modules/{m['id']}/complete")
    r = client.get(f"{base}/eligibility")
    print(f"4. two of three modules done        → {r.json()}")

    r = client.post(f"{base}/certificate")
    print(f"5. POST …/certificate (too early)   → {r.status_code}  {r.json()['detail']}")

    client.post(f"{base}/modules/{modules[2]['id']}/complete")
    r = client.get(f"{base}/state")
    print(f"6. all modules done                 → state={r.json()['state']}")

    # ── Issue, re-issue, verify ──────────────────────────────────────
    first = client.post(f"{base}/certificate").json()
    second = client.post(f"{base}/certificate").json()
    print(f"7. POST …/certificate               → {first['certificate_number']}")
    print(
        "8. POST …/certificate (again)       → same certificate: "
        f"{first['id'] == second['id']}"
    )

    code = first["verification_code"]
    r = client.get(f"/v1/certificates/verify/{code}")
    print(f"9. GET  /v1/certificates/verify/…   → {r.status_code}")
    r = client.get(f"/v1/certificates/verify/{code}/document")
    print(f"10. GET …/document                  → {r.json()}")


if __name__ == "__main__":
    main()
