from __future__ import annotations

from datetime import date

from tuition_ledger.attendance.cache import AttendanceCache
from tuition_ledger.attendance.model import AttendanceKey, AttendanceRecord
from tuition_ledger.core.enums import AttendanceStatus

DAY = date(2024, 1, 10)


def _rec(rid: str, student_id: str, status=AttendanceStatus.PRESENT, *, subject_id=None, day=DAY) -> AttendanceRecord:
    return AttendanceRecord(id=rid, student_id=student_id, date=day, status=status, subject_id=subject_id)


def test_load_keeps_server_order_and_find_uses_composite_key():
    cache = AttendanceCache([_rec("1", "S1"), _rec("2", "S2"), _rec("3", "S1", subject_id="MATH101")])

    assert [r.id for r in cache.records()] == ["1", "2", "3"]
    assert cache.find(AttendanceKey("S1", DAY)).id == "1"
    assert cache.find(AttendanceKey("S1", DAY, subject_id="MATH101")).id == "3"
    assert cache.find(AttendanceKey("S1", DAY, subject_id="PHY101")) is None
    assert AttendanceKey("S2", DAY) in cache
    assert len(cache) == 3


def test_upsert_local_replaces_in_place_or_prepends():
    cache = AttendanceCache([_rec("1", "S1"), _rec("2", "S2")])

    cache.upsert_local(_rec("2", "S2", AttendanceStatus.LATE))
    cache.upsert_local(_rec("temp-x", "S3"))

    assert [r.id for r in cache.records()] == ["temp-x", "1", "2"]
    assert cache.find(AttendanceKey("S2", DAY)).status == AttendanceStatus.LATE


def test_restore_undoes_inserts_and_replacements():
    cache = AttendanceCache([_rec("1", "S1"), _rec("2", "S2")])
    before = cache.records()

    snap = cache.snapshot()
    cache.upsert_local(_rec("1", "S1", AttendanceStatus.ABSENT), snap)
    cache.upsert_local(_rec("temp-a", "S3"), snap)
    cache.upsert_local(_rec("temp-a", "S3", AttendanceStatus.LATE), snap)
    cache.restore(snap)

    assert cache.records() == before


def test_restore_leaves_entries_overwritten_by_another_writer():
    cache = AttendanceCache([_rec("1", "S1")])

    mine = cache.snapshot()
    cache.upsert_local(_rec("1", "S1", AttendanceStatus.ABSENT), mine)
    theirs = cache.snapshot()
    cache.upsert_local(_rec("temp-b", "S2"), theirs)
    cache.upsert_local(_rec("1", "S1", AttendanceStatus.LATE), theirs)

    cache.restore(mine)

    assert cache.find(AttendanceKey("S1", DAY)).status == AttendanceStatus.LATE
    assert cache.find(AttendanceKey("S2", DAY)) is not None


def test_restore_after_load_is_a_no_op():
    cache = AttendanceCache([_rec("1", "S1")])
    snap = cache.snapshot()
    cache.upsert_local(_rec("temp-a", "S2"), snap)

    cache.load([_rec("9", "S2")])
    cache.restore(snap)

    assert [r.id for r in cache.records()] == ["9"]


def test_load_collapses_duplicate_identities_to_first_row():
    cache = AttendanceCache([_rec("1", "S1", AttendanceStatus.LATE), _rec("2", "S1")])

    assert [r.id for r in cache.records()] == ["1"]
