from datetime import date, timedelta

import pytest

from app.core.errors import NotFoundError, ScheduleValidationError
from app.db.models import AuditAction, DaySchedules, DayScheduleSource, PublicHolidays, ScheduleAudit
from app.services.schedule import resolve_days, resolve_single_day, resolve_week
from app.services.schedule.data_loader import load_holidays
from app.services.schedule.materializer import apply_manual_edit, apply_week_edits, get_day_row, resync_day_row, snapshot_day


class TestResolveSingleDay:
    def test_creates_row_on_first_resolution(self, db, alice, alice_assignment, monday):
        day = resolve_single_day(db, alice.id, monday)

        assert day.id is not None
        assert day.hours == 8.0
        row = db.query(DaySchedules).filter(DaySchedules.id == day.id).one()
        assert row.source == DayScheduleSource.TEMPLATE
        assert row.assignment_id == alice_assignment.id

    def test_repeatable(self, db, alice, alice_assignment, monday):
        first = resolve_single_day(db, alice.id, monday)
        second = resolve_single_day(db, alice.id, monday)
        assert first == second
        assert db.query(DaySchedules).count() == 1

    def test_resync_discards_manual(self, db, alice, alice_assignment, monday):
        day = resolve_single_day(db, alice.id, monday)
        apply_manual_edit(db, get_day_row(db, day.id), {"isWorking": False}, alice.id)
        assert resolve_single_day(db, alice.id, monday).is_working is False

        resynced = resolve_single_day(db, alice.id, monday, resync=True)
        assert resynced.is_working is True
        assert resynced.id == day.id

    def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            resolve_single_day(db, 999, date(2025, 1, 20))


class TestResolveDays:
    def test_pure_read_creates_nothing(self, db, alice, alice_assignment, monday):
        days = resolve_days(db, alice.id, monday, monday + timedelta(days=6))
        assert len(days) == 7
        assert all(d.id is None for d in days)
        assert db.query(DaySchedules).count() == 0

    def test_manual_edit_not_overwritten(self, db, alice, alice_assignment, monday):
        week = resolve_week(db, alice.id, monday)
        row = get_day_row(db, week[0].id)
        apply_manual_edit(db, row, {"timeBlocks": [{"start": "10:00", "end": "11:00"}]}, alice.id)

        again = resolve_week(db, alice.id, monday)
        assert again[0].hours == 1.0
        assert snapshot_day(row) == {"isWorking": True, "timeBlocks": [{"start": "10:00", "end": "11:00"}]}
        assert row.last_updated_by == alice.id

    def test_empty_edit_is_no_op(self, db, alice, alice_assignment, monday):
        week = resolve_week(db, alice.id, monday)
        row = get_day_row(db, week[0].id)
        apply_manual_edit(db, row, {}, alice.id)
        assert row.source == DayScheduleSource.TEMPLATE


class TestLoadHolidays:
    def test_recurring_expanded_per_year(self, db):
        db.add(PublicHolidays(date=date(2020, 12, 25), name="Weihnachten", is_recurring=True, country_code="DE"))
        db.add(PublicHolidays(date=date(2024, 12, 26), name="2. Weihnachtstag", country_code="DE"))
        db.add(PublicHolidays(date=date(2024, 12, 24), name="Other country", country_code="AT"))
        db.commit()

        holidays = load_holidays(db, date(2024, 12, 1), date(2025, 12, 31))

        assert holidays == {date(2024, 12, 25), date(2024, 12, 26), date(2025, 12, 25)}

    def test_leap_day_skipped_in_other_years(self, db):
        db.add(PublicHolidays(date=date(2024, 2, 29), name="Leap", is_recurring=True, country_code="DE"))
        db.commit()
        assert load_holidays(db, date(2025, 1, 1), date(2025, 12, 31)) == set()
        assert load_holidays(db, date(2028, 1, 1), date(2028, 12, 31)) == {date(2028, 2, 29)}


class TestLockedRefresh:
    def test_locked_row_not_refreshed(self, db, alice, alice_assignment, standard_template, monday):
        week = resolve_week(db, alice.id, monday)
        standard_template.pattern = {"0": {"isWorking": False, "timeBlocks": []}}
        db.commit()

        locked = {week[0].id}
        again = resolve_week(db, alice.id, monday, is_locked=lambda day_id: day_id in locked)
        assert again[0].hours == 8.0
        assert again[1].is_working is False

        assert resolve_week(db, alice.id, monday)[0].is_working is False


class TestWeekEdits:
    def rows(self, db, alice, monday):
        week = resolve_week(db, alice.id, monday)
        return {d.id: get_day_row(db, d.id) for d in week}, [d.id for d in week]

    def test_all_days_written_in_one_commit(self, db, alice, alice_assignment, monday):
        rows, ids = self.rows(db, alice, monday)
        updated = apply_week_edits(
            db, rows, {ids[0]: {"isWorking": False}, ids[1]: {}, ids[6]: {"isWorking": True, "timeBlocks": [{"start": "09:00", "end": "11:00"}]}},
            alice.id,
        )

        assert [r.date for r in updated] == [monday + timedelta(days=i) for i in range(7)]
        assert updated[0].source == DayScheduleSource.MANUAL
        assert updated[1].source == DayScheduleSource.TEMPLATE
        assert updated[6].time_blocks == [{"start": "09:00", "end": "11:00"}]
        audit = db.query(ScheduleAudit).order_by(ScheduleAudit.date).all()
        assert [(a.date, a.action) for a in audit] == [(monday, AuditAction.WEEK_EDIT), (monday + timedelta(days=6), AuditAction.WEEK_EDIT)]

    def test_invalid_day_rolls_back_all(self, db, alice, alice_assignment, monday):
        rows, ids = self.rows(db, alice, monday)
        with pytest.raises(ScheduleValidationError):
            apply_week_edits(
                db, rows, {ids[0]: {"isWorking": False}, ids[1]: {"timeBlocks": [{"start": "12:00", "end": "09:00"}]}},
                alice.id,
            )

        assert get_day_row(db, ids[0]).is_working is True
        assert get_day_row(db, ids[0]).source == DayScheduleSource.TEMPLATE
        assert db.query(ScheduleAudit).count() == 0


class TestAuditTrail:
    def test_manual_edit_and_resync_recorded(self, db, alice, alice_assignment, monday):
        day = resolve_single_day(db, alice.id, monday)
        row = get_day_row(db, day.id)
        apply_manual_edit(db, row, {"isWorking": False}, alice.id)
        resync_day_row(db, row, alice.id)

        entries = db.query(ScheduleAudit).order_by(ScheduleAudit.id).all()
        assert [e.action for e in entries] == [AuditAction.MANUAL_EDIT, AuditAction.RESYNC]
        assert entries[0].old_value["isWorking"] is True
        assert entries[0].new_value == {"isWorking": False, "timeBlocks": []}
        assert entries[1].new_value["isWorking"] is True
        assert all(e.week_start == monday and e.changed_by == alice.id for e in entries)

    def test_lazy_creation_not_recorded(self, db, alice, alice_assignment, monday):
        resolve_week(db, alice.id, monday)
        assert db.query(ScheduleAudit).count() == 0
