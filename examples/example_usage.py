"""Example: mark attendance through the sync engine, then pull a report range."""

import asyncio
from datetime import date, timedelta

from tuition_ledger.main import build_from_environment


async def run() -> None:
    engine = build_from_environment().attendance_engine
    tenant = "demo-tuition"
    today = date.today()

    await engine.query(tenant, {"date": today})
    await engine.mark(tenant, "S1", today, "present")
    await engine.mark(tenant, "S1", today, "late", subject_id="MATH101")
    await engine.bulk_mark(
        tenant,
        [
            {"student_id": "S2", "date": today, "status": "absent"},
            {"student_id": "S3", "date": today, "status": "excused", "notes": "medical"},
        ],
    )
    for r in await engine.query(tenant, {"date": today}):
        print(r.student_id, r.subject_id or "-", r.status.value)

    history = await engine.historical(tenant, today - timedelta(days=90), today)
    print(f"{len(history)} rows in the last 90 days")


if __name__ == "__main__":
    asyncio.run(run())
