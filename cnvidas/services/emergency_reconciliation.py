"""
Emergency queue housekeeping
Expires waiting cases nobody picked up and reports/repairs rows whose
status and doctor assignment disagree.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..config import EMERGENCY_WAITING_TIMEOUT_MINUTES
from ..domain.appointments.lifecycle import CANCELLED, IN_PROGRESS, SCHEDULED, WAITING
from ..domain.emergency.repository import EmergencyRepository
from ..domain.notifications.service import create_notification
from ..models import Appointment

logger = logging.getLogger(__name__)


def expire_stale_emergencies(db: Session, now: Optional[datetime] = None, timeout_minutes: Optional[int] = None) -> dict:
    """
    Cancel waiting emergency cases older than the timeout and give the
    reserved consultation back. Should be run as a scheduled job.

    Returns:
        dict: Summary of the cases expired
    """
    now = now or datetime.utcnow()
    timeout = EMERGENCY_WAITING_TIMEOUT_MINUTES if timeout_minutes is None else timeout_minutes
    cutoff = now - timedelta(minutes=timeout)
    repo = EmergencyRepository()

    summary = {"expired": 0, "refunded": 0, "appointment_ids": [], "cutoff": cutoff.isoformat()}

    try:
        for case in repo.get_stale_waiting_cases(db, cutoff):
            # A doctor may accept between the SELECT and this UPDATE
            if not repo.cancel_if_status(db, case.id, (WAITING,), "timeout"):
                logger.info(f"ℹ️ Emergency {case.id} left the queue before expiring")
                continue

            db.refresh(case)
            if repo.refund_allowance(db, case):
                summary["refunded"] += 1

            create_notification(
                db,
                user_id=case.user_id,
                title="Atendimento de emergência expirado",
                message=(
                    "Nenhum médico ficou disponível a tempo. "
                    "Sua consulta de emergência foi devolvida ao seu plano."
                ),
                type="emergency",
                related_id=case.id,
            )
            summary["expired"] += 1
            summary["appointment_ids"].append(case.id)
            logger.info(f"⏰ Emergency {case.id} expired after {timeout} minutes in the queue")

        db.commit()
    except Exception as e:
        logger.error(f"❌ Error expiring stale emergencies: {e}")
        db.rollback()
        raise

    if summary["expired"]:
        logger.info(f"📊 Emergency expiry summary: {summary}")
    return summary


def _inconsistent_queries(db: Session) -> dict:
    emergencies = db.query(Appointment).filter(Appointment.is_emergency == True)  # noqa: E712
    return {
        "scheduled_emergencies": emergencies.filter(Appointment.status == SCHEDULED),
        "waiting_with_doctor": emergencies.filter(
            Appointment.status == WAITING, Appointment.doctor_id.isnot(None)
        ),
        "in_progress_without_doctor": emergencies.filter(
            Appointment.status == IN_PROGRESS, Appointment.doctor_id.is_(None)
        ),
    }


def diagnose_emergency_status(db: Session) -> dict:
    """Report emergency rows whose status and doctor assignment disagree"""
    report = {}
    for name, query in _inconsistent_queries(db).items():
        rows = query.order_by(Appointment.id.asc()).all()
        report[name] = [
            {"id": a.id, "user_id": a.user_id, "doctor_id": a.doctor_id, "status": a.status, "date": a.date.isoformat()}
            for a in rows
        ]

    status_counts = {}
    for status in (WAITING, SCHEDULED, IN_PROGRESS, "completed", CANCELLED):
        status_counts[status] = (
            db.query(Appointment)
            .filter(Appointment.is_emergency == True, Appointment.status == status)  # noqa: E712
            .count()
        )

    report["status_counts"] = status_counts
    report["total_inconsistent"] = sum(
        len(report[name]) for name in ("scheduled_emergencies", "waiting_with_doctor", "in_progress_without_doctor")
    )
    return report


def fix_emergency_status(db: Session) -> dict:
    """
    Normalize inconsistent emergency rows:
      scheduled + doctor   -> in_progress
      scheduled, no doctor -> waiting
      waiting + doctor     -> in_progress
      in_progress, no doctor -> waiting
    """
    summary = {"to_in_progress": 0, "to_waiting": 0}

    try:
        queries = _inconsistent_queries(db)

        for appointment in queries["scheduled_emergencies"].all():
            if appointment.doctor_id:
                appointment.status = IN_PROGRESS
                appointment.accepted_at = appointment.accepted_at or appointment.date
                summary["to_in_progress"] += 1
            else:
                appointment.status = WAITING
                summary["to_waiting"] += 1
            logger.info(f"🔧 Emergency {appointment.id}: scheduled -> {appointment.status}")

        for appointment in queries["waiting_with_doctor"].all():
            appointment.status = IN_PROGRESS
            appointment.accepted_at = appointment.accepted_at or appointment.date
            summary["to_in_progress"] += 1
            logger.info(f"🔧 Emergency {appointment.id}: waiting -> in_progress")

        for appointment in queries["in_progress_without_doctor"].all():
            appointment.status = WAITING
            appointment.accepted_at = None
            summary["to_waiting"] += 1
            logger.info(f"🔧 Emergency {appointment.id}: in_progress -> waiting")

        db.commit()
    except Exception as e:
        logger.error(f"❌ Error fixing emergency statuses: {e}")
        db.rollback()
        raise

    summary["total_fixed"] = summary["to_in_progress"] + summary["to_waiting"]
    return summary
