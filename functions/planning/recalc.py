"""
Cascading re-dating of a project schedule.

Steps are walked in catalog order with a cursor holding the next free
working day. Completed steps never move. The step the user just edited (the
focus) is taken as given and everything after it is shifted to follow it,
except steps whose date was locked by hand: those stay put and the trade is
flagged for a phone call instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable, Mapping, Optional

from planning.alerts import ADVANCE, DELAY, SubcontractorContact
from planning.business_days import (
    add_business_days,
    end_date_for,
    roll_forward,
    sub_business_days,
)
from planning.catalog import MINIMUM_DELAYS, sort_by_execution_order
from planning.conflicts import find_trade_conflicts
from planning.schedule import EDITABLE_FIELDS, ScheduleItem, ScheduleStatus

logger = logging.getLogger(__name__)

# A locked step starting this many calendar days after the cursor is worth a call.
ADVANCE_NOTICE_DAYS = 2

_DATE_FIELDS = ("start_date", "end_date")


@dataclass
class RecalcResult:
    patches: dict[str, dict[str, Any]] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    contacts: list[SubcontractorContact] = field(default_factory=list)

    def apply(self, items: Iterable[ScheduleItem]) -> list[ScheduleItem]:
        """Return `items` with every patch applied, in catalog order."""
        return [
            item.with_patch(self.patches[item.id]) if item.id in self.patches else item
            for item in sort_by_execution_order(items)
        ]


def normalize_completed_dates(
    item: ScheduleItem, today: date
) -> tuple[Optional[date], Optional[date]]:
    """
    A completed step cannot end in the future. When its end is clamped to
    today, or its start falls after its end, the start is recomputed from the
    end and the duration.
    """
    if item.start_date is None and item.end_date is None:
        return None, None

    computed_end = item.end_date or end_date_for(item.start_date, item.duration)
    end = min(computed_end, today)
    from_end = sub_business_days(end, item.duration - 1)
    if end != computed_end or (item.start_date is not None and item.start_date > end):
        return from_end, end
    return item.start_date or from_end, end


def needs_repair(items: Iterable[ScheduleItem]) -> bool:
    """True when a completed step ends before it starts."""
    return any(
        item.is_completed
        and item.start_date is not None
        and item.end_date is not None
        and item.end_date < item.start_date
        for item in items
    )


def _diff(item: ScheduleItem, start: date, end: date) -> dict[str, Any]:
    patch: dict[str, Any] = {}
    if item.start_date != start:
        patch["start_date"] = start
    if item.end_date != end:
        patch["end_date"] = end
    return patch


def _required_start(step_id: str, step_end_dates: Mapping[str, date]) -> Optional[date]:
    rule = MINIMUM_DELAYS.get(step_id)
    if rule is None or rule.after_step not in step_end_dates:
        return None
    return step_end_dates[rule.after_step] + timedelta(days=rule.days)


def regenerate(
    items: Iterable[ScheduleItem],
    today: date,
    focus_id: Optional[str] = None,
    focus_updates: Optional[Mapping[str, Any]] = None,
) -> RecalcResult:
    """
    Recompute the dates of every step that is allowed to move.

    `focus_updates` is the user's edit of the `focus_id` step. An explicit
    `start_date: None` asks for the step to be re-dated from the steps before
    it. Returns the patches to persist, warnings for the user and the locked
    steps whose trade should be contacted.
    """
    ordered = sort_by_execution_order(items)
    result = RecalcResult()
    direct_conflicts: list[str] = []
    focus_updates = dict(focus_updates or {}) if focus_id else {}

    focus_index = next(
        (index for index, item in enumerate(ordered) if item.id == focus_id), -1
    )
    locked_ids = {
        item.id
        for item in ordered
        if not item.is_completed and item.is_manual_date and item.id != focus_id
    }

    step_end_dates: dict[str, date] = {}
    for item in ordered:
        if item.is_completed:
            _, end = normalize_completed_dates(item, today)
            if end is not None:
                step_end_dates[item.step_id] = end
        elif item.id == focus_id and focus_updates.get("end_date"):
            step_end_dates[item.step_id] = focus_updates["end_date"]
        elif item.id == focus_id and focus_updates.get("start_date"):
            step_end_dates[item.step_id] = end_date_for(
                focus_updates["start_date"], item.duration
            )

    cursor: Optional[date] = None
    for index, item in enumerate(ordered):
        duration = item.duration

        if item.is_completed:
            start, end = normalize_completed_dates(item, today)
            if start is None or end is None:
                continue
            patch = _diff(item, start, end)
            if item.id == focus_id and focus_updates:
                patch.update(
                    {k: v for k, v in focus_updates.items() if k not in _DATE_FIELDS}
                )
                for key in _DATE_FIELDS:
                    if focus_updates.get(key) is not None:
                        patch[key] = focus_updates[key]
            if patch:
                result.patches[item.id] = patch
            cursor = add_business_days(end, 1)
            continue

        required_start = _required_start(item.step_id, step_end_dates)

        if item.id == focus_id and focus_updates:
            patch = {}
            is_reset = "start_date" in focus_updates and focus_updates["start_date"] is None
            if is_reset:
                new_start = cursor or today
                if required_start and new_start < required_start:
                    new_start = required_start
                new_start = roll_forward(new_start)
                new_end = end_date_for(new_start, duration)
                if "is_manual_date" in focus_updates:
                    patch["is_manual_date"] = focus_updates["is_manual_date"]
            elif focus_updates.get("start_date"):
                new_start = focus_updates["start_date"]
                new_end = focus_updates.get("end_date") or end_date_for(new_start, duration)
                if required_start and new_start < required_start:
                    rule = MINIMUM_DELAYS[item.step_id]
                    direct_conflicts.append(
                        f"La date choisie ({new_start.isoformat()}) ne respecte pas le "
                        f"délai de {rule.days} jours après l'étape précédente "
                        f"({rule.reason}); il manque {(required_start - new_start).days} "
                        f"jour(s). Date recommandée: {required_start.isoformat()}."
                    )
            elif focus_updates.get("end_date"):
                new_end = focus_updates["end_date"]
                new_start = item.start_date or today
            else:
                new_start = item.start_date or today
                new_end = item.end_date or end_date_for(new_start, duration)

            patch.update(_diff(item, new_start, new_end))
            if not is_reset:
                patch.update(
                    {k: v for k, v in focus_updates.items() if k not in _DATE_FIELDS}
                )
            if patch:
                result.patches[item.id] = patch
            step_end_dates[item.step_id] = new_end
            cursor = add_business_days(new_end, 1)
            continue

        if focus_index < 0 or index > focus_index:
            if item.id in locked_ids and item.start_date:
                locked_start = item.start_date
                if cursor and locked_start < cursor:
                    overlap = (cursor - locked_start).days
                    if not direct_conflicts:
                        direct_conflicts.append(
                            f"\"{item.step_name}\" a une date verrouillée "
                            f"({locked_start.isoformat()}) qui chevauche l'étape "
                            f"précédente ({overlap} jour(s) de conflit)."
                        )
                    result.contacts.append(SubcontractorContact(item, DELAY, overlap))
                elif cursor and locked_start > cursor:
                    advance = (locked_start - cursor).days
                    if advance >= ADVANCE_NOTICE_DAYS:
                        result.contacts.append(SubcontractorContact(item, ADVANCE, advance))

                if required_start and locked_start < required_start and not direct_conflicts:
                    direct_conflicts.append(
                        f"\"{item.step_name}\" a une date verrouillée qui ne respecte pas "
                        f"le délai minimum ({(required_start - locked_start).days} "
                        f"jour(s) manquants)."
                    )

                locked_end = item.end_date or end_date_for(locked_start, duration)
                step_end_dates[item.step_id] = locked_end
                cursor = add_business_days(locked_end, 1)
                continue

            new_start = cursor or item.start_date or today
            if required_start and new_start < required_start:
                new_start = required_start
            new_start = roll_forward(new_start)
            new_end = end_date_for(new_start, duration)
            patch = _diff(item, new_start, new_end)
            if patch:
                result.patches[item.id] = patch
            step_end_dates[item.step_id] = new_end
            cursor = add_business_days(new_end, 1)
        elif item.start_date and item.end_date:
            step_end_dates[item.step_id] = item.end_date
            cursor = add_business_days(item.end_date, 1)

    if direct_conflicts:
        result.warnings = direct_conflicts
    else:
        conflicts = find_trade_conflicts(result.apply(ordered))
        if conflicts:
            first = conflicts[0]
            result.warnings = [
                f"Conflit de métiers: {first.date.isoformat()}: {' + '.join(first.trades)}"
            ]

    logger.debug(
        "Regenerated %d steps: %d patched, %d contacts",
        len(ordered),
        len(result.patches),
        len(result.contacts),
    )
    return result


def prepare_edit(
    item: ScheduleItem, updates: Mapping[str, Any], today: date
) -> dict[str, Any]:
    """
    Keep the editable fields of `updates`. Marking a step completed fixes its
    dates: it ends today unless the caller moved the end, and starts
    `days - 1` working days earlier unless the caller moved the start.
    """
    clean = {key: value for key, value in updates.items() if key in EDITABLE_FIELDS}
    if isinstance(clean.get("status"), ScheduleStatus):
        clean["status"] = clean["status"].value

    becomes_completed = (
        clean.get("status") == ScheduleStatus.COMPLETED.value and not item.is_completed
    )
    if not becomes_completed:
        return clean

    days = clean.get("actual_days") or item.actual_days or item.estimated_days or 1
    days = max(1, days)
    end_changed = "end_date" in clean and clean["end_date"] != item.end_date
    start_changed = "start_date" in clean and clean["start_date"] != item.start_date

    end = clean["end_date"] if end_changed and clean["end_date"] else today
    start = (
        clean["start_date"]
        if start_changed and clean["start_date"]
        else sub_business_days(end, days - 1)
    )
    clean.update(start_date=start, end_date=end, actual_days=days)
    return clean


def completion_updates(today: date, actual_days: Optional[int] = None) -> dict[str, Any]:
    """Focus updates for a step finished today after `actual_days` working days."""
    days = actual_days if actual_days and actual_days > 0 else 1
    return {
        "status": ScheduleStatus.COMPLETED.value,
        "actual_days": days,
        "start_date": sub_business_days(today, days - 1),
        "end_date": today,
    }


def uncompletion_updates() -> dict[str, Any]:
    return {"status": ScheduleStatus.PENDING.value, "actual_days": None}
