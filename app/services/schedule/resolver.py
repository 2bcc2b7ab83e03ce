"""
Assignment resolution.
Picks the governing template assignment for a user/date and materializes
the day from that template's weekday pattern. Pure: no database access.
"""

import logging
from datetime import date
from typing import Iterable, Optional

from app.core.errors import DataIntegrityWarning, ScheduleValidationError

from .time_blocks import validate_day
from .types import (
    Assignment,
    DayPattern,
    DaySource,
    EmployeeProfile,
    ResolvedDay,
    Template,
)


logger = logging.getLogger(__name__)


def _assignment_sort_key(assignment: Assignment) -> tuple:
    # open-ended ranges count as the least specific
    span = assignment.span_days if assignment.span_days is not None else float("inf")
    return (
        -assignment.priority,
        -assignment.start_date.toordinal(),
        span,
        -assignment.id,
    )


def select_assignment(assignments: Iterable[Assignment], day: date) -> Optional[Assignment]:
    """
    Select the single assignment governing `day`.

    Order: priority desc, then latest start_date, then the shorter bounded
    range, then the most recently created (highest id).
    """
    candidates = [a for a in assignments if a.covers(day)]
    if not candidates:
        return None
    return min(candidates, key=_assignment_sort_key)


def parse_day_pattern(template: Template, weekday: int) -> DayPattern:
    """
    Extract one weekday from a stored template pattern.

    Raises DataIntegrityWarning when the stored data is unusable.
    A weekday missing from the pattern is a day off.
    """
    pattern = template.pattern
    if not isinstance(pattern, dict):
        raise DataIntegrityWarning(
            f"Template {template.id} pattern is not a mapping", template_id=template.id, raw=pattern,
        )

    raw_day = pattern.get(str(weekday), pattern.get(weekday))
    if raw_day is None:
        logger.debug("Template %s has no entry for weekday %s, resolving as non-working", template.id, weekday)
        return DayPattern(is_working=False)
    if not isinstance(raw_day, dict):
        raise DataIntegrityWarning(
            f"Template {template.id} weekday {weekday} is not an object",
            template_id=template.id, weekday=weekday, raw=raw_day,
        )

    is_working = raw_day.get("isWorking", raw_day.get("is_working"))
    if not isinstance(is_working, bool):
        raise DataIntegrityWarning(
            f"Template {template.id} weekday {weekday} has no boolean isWorking",
            template_id=template.id, weekday=weekday, raw=raw_day,
        )

    try:
        blocks = validate_day(is_working, raw_day.get("timeBlocks", raw_day.get("time_blocks", [])))
    except ScheduleValidationError as e:
        raise DataIntegrityWarning(
            f"Template {template.id} weekday {weekday}: {e.message}",
            template_id=template.id, weekday=weekday, raw=raw_day,
        )
    return DayPattern(is_working=is_working, time_blocks=blocks)


def materialize_day(
    user_id: int,
    day: date,
    assignment: Assignment,
    template: Optional[Template],
) -> ResolvedDay:
    """Build a template-sourced day; bad pattern data degrades to a day off."""
    if template is None:
        logger.warning(
            "Assignment %s references missing template %s, resolving %s as non-working",
            assignment.id, assignment.template_id, day,
        )
        return ResolvedDay(user_id=user_id, date=day, is_working=False, assignment_id=assignment.id)

    try:
        pattern = parse_day_pattern(template, day.weekday())
    except DataIntegrityWarning as w:
        logger.warning("Data integrity problem for user %s on %s: %s", user_id, day, w)
        pattern = DayPattern(is_working=False)

    return ResolvedDay(
        user_id=user_id,
        date=day,
        is_working=pattern.is_working,
        # fresh list so edits to a day never leak into the template
        time_blocks=list(pattern.time_blocks),
        source=DaySource.TEMPLATE,
        template_id=template.id,
        assignment_id=assignment.id,
    )


def legacy_day(profile: EmployeeProfile, day: date, standard_days: Iterable[int]) -> ResolvedDay:
    """Fallback from the per-user default start/end fields, or an empty day."""
    if not profile.has_legacy_hours or day.weekday() not in set(standard_days):
        return ResolvedDay.empty(profile.user_id, day)
    try:
        blocks = validate_day(True, [{"start": profile.default_start_time, "end": profile.default_end_time}])
    except ScheduleValidationError as e:
        logger.warning("Invalid legacy hours for user %s: %s", profile.user_id, e.message)
        return ResolvedDay.empty(profile.user_id, day)
    return ResolvedDay(user_id=profile.user_id, date=day, is_working=True, time_blocks=blocks)


def resolve_from_templates(
    profile: EmployeeProfile,
    day: date,
    assignments: Iterable[Assignment],
    templates: dict[int, Template],
    standard_days: Iterable[int],
) -> ResolvedDay:
    """Resolver output for a day, ignoring any stored manual record."""
    assignment = select_assignment(assignments, day)
    if assignment is None:
        return legacy_day(profile, day, standard_days)
    return materialize_day(profile.user_id, day, assignment, templates.get(assignment.template_id))


def reconcile_day(
    resolved: ResolvedDay,
    existing: Optional[ResolvedDay] = None,
    patch: Optional[dict] = None,
    resync: bool = False,
) -> ResolvedDay:
    """
    Merge resolver output, the stored record and an incoming edit.

    - a stored manual record wins over resolver output unless resync is set
    - a stored template record is refreshed from the resolver
    - a patch ({"is_working", "time_blocks"}) always yields a manual day
    The stored id is carried over so the caller updates in place.
    """
    if existing is not None and existing.source == DaySource.MANUAL and not resync:
        base = existing
    else:
        base = resolved

    result = ResolvedDay(
        user_id=base.user_id,
        date=base.date,
        is_working=base.is_working,
        time_blocks=list(base.time_blocks),
        source=base.source,
        template_id=base.template_id,
        assignment_id=base.assignment_id,
        id=existing.id if existing is not None else None,
    )

    if patch:
        is_working = patch.get("is_working", result.is_working)
        raw_blocks = patch.get("time_blocks", [b.to_dict() for b in result.time_blocks])
        result.is_working = bool(is_working)
        result.time_blocks = validate_day(result.is_working, raw_blocks)
        result.source = DaySource.MANUAL

    return result


def resolve_day(
    profile: EmployeeProfile,
    day: date,
    assignments: Iterable[Assignment],
    templates: dict[int, Template],
    existing: Optional[ResolvedDay] = None,
    resync: bool = False,
    standard_days: Iterable[int] = (0, 1, 2, 3, 4),
) -> ResolvedDay:
    """
    Resolve one day for one user.

    A stored manual day takes precedence and skips resolution unless
    resync is requested, which discards the manual flag.
    """
    if existing is not None and existing.source == DaySource.MANUAL and not resync:
        return reconcile_day(existing, existing)
    resolved = resolve_from_templates(profile, day, assignments, templates, standard_days)
    return reconcile_day(resolved, existing, resync=resync)


def is_planned_working_day(
    day: date,
    assignments: Iterable[Assignment],
    templates: dict[int, Template],
    standard_days: Iterable[int],
) -> bool:
    """
    Whether `day` is a planned working day for quota purposes.
    Uses the governing template, falling back to the standard working week.
    Manual edits do not change the plan.
    """
    assignment = select_assignment(assignments, day)
    if assignment is None:
        return day.weekday() in set(standard_days)
    template = templates.get(assignment.template_id)
    if template is None:
        return False
    try:
        return parse_day_pattern(template, day.weekday()).is_working
    except DataIntegrityWarning:
        # already logged when the day itself is materialized
        return False

