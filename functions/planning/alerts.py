"""
Reminder alerts derived from a schedule: supplier calls, fabrication
orders, measurements and subcontractor contacts after re-dating.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

from planning.business_days import sub_business_days
from planning.schedule import AlertType, ScheduleAlert, ScheduleItem

DELAY = "delay"
ADVANCE = "advance"


@dataclass(frozen=True)
class SubcontractorContact:
    """A locked item whose trade must be told the schedule moved."""

    schedule: ScheduleItem
    reason: str
    days: int


def alerts_for_item(
    item: ScheduleItem,
    items: Iterable[ScheduleItem],
    not_before: Optional[date] = None,
) -> list[ScheduleAlert]:
    if not item.start_date:
        return []

    supplier = item.supplier_name or "le fournisseur"
    alerts: list[ScheduleAlert] = []

    if item.supplier_schedule_lead_days > 0:
        alerts.append(
            ScheduleAlert(
                project_id=item.project_id,
                schedule_id=item.id,
                alert_type=AlertType.SUPPLIER_CALL.value,
                alert_date=sub_business_days(item.start_date, item.supplier_schedule_lead_days),
                message=f"Appeler {supplier} pour {item.step_name}",
            )
        )

    if item.fabrication_lead_days > 0:
        alerts.append(
            ScheduleAlert(
                project_id=item.project_id,
                schedule_id=item.id,
                alert_type=AlertType.FABRICATION_START.value,
                alert_date=sub_business_days(item.start_date, item.fabrication_lead_days),
                message=f"Lancer la fabrication pour {item.step_name}",
            )
        )

    if item.measurement_required and item.measurement_after_step_id:
        previous = next(
            (s for s in items if s.step_id == item.measurement_after_step_id), None
        )
        if previous is not None and previous.end_date:
            message = f"Prendre les mesures pour {item.step_name}"
            if item.measurement_notes:
                message += f" - {item.measurement_notes}"
            alerts.append(
                ScheduleAlert(
                    project_id=item.project_id,
                    schedule_id=item.id,
                    alert_type=AlertType.MEASUREMENT.value,
                    alert_date=previous.end_date,
                    message=message,
                )
            )

    if not_before is not None:
        alerts = [alert for alert in alerts if alert.alert_date >= not_before]
    return alerts


def contact_alert(contact: SubcontractorContact, today: date) -> ScheduleAlert:
    item = contact.schedule
    who = item.supplier_name or "le sous-traitant"
    if item.supplier_phone:
        who += f" ({item.supplier_phone})"
    if contact.reason == DELAY:
        message = (
            f"URGENT: Contacter {who} pour \"{item.step_name}\" - l'échéancier a pris "
            f"du retard ({contact.days} jour(s)). Date prévue: {item.start_date.isoformat()}"
        )
    else:
        message = (
            f"Contacter {who} pour \"{item.step_name}\" - l'échéancier est en avance de "
            f"{contact.days} jour(s). Possibilité d'avancer les travaux?"
        )
    return ScheduleAlert(
        project_id=item.project_id,
        schedule_id=item.id,
        alert_type=AlertType.CONTACT_SUBCONTRACTOR.value,
        alert_date=today,
        message=message,
    )
