"""
ARQ Background Worker for Async Jobs
Handles emergency alert emails and the scheduled queue/allowance housekeeping
"""

import logging
import os

from arq.cron import cron

# Import models at module level so SQLAlchemy can resolve relationships
from . import models  # noqa: F401
from .database import SessionLocal
from .jobs import get_redis_settings
from .models import Appointment

logger = logging.getLogger(__name__)


async def send_emergency_alert_emails_task(ctx, appointment_id: int):
    """
    Email the doctors who should see a new emergency case

    Args:
        ctx: ARQ context
        appointment_id: Emergency appointment ID

    Returns:
        dict with sent/failed counts
    """
    from .domain.emergency.repository import EmergencyRepository
    from .email_service import send_emergency_alert_email

    logger.info(f"🚨 ARQ Worker: emergency alerts for appointment {appointment_id}")
    logger.info(f"📋 Job ID: {ctx.get('job_id', 'unknown')}")

    db = SessionLocal()
    try:
        appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
        if not appointment:
            logger.error(f"❌ Appointment not found: {appointment_id} - skipping alerts")
            return {"sent": 0, "failed": 0, "skipped": True}

        if appointment.status != "waiting":
            logger.info(f"ℹ️ Emergency {appointment_id} is {appointment.status} - skipping alerts")
            return {"sent": 0, "failed": 0, "skipped": True}

        patient_name = appointment.patient.full_name if appointment.patient else "Paciente"
        doctors = EmergencyRepository.get_emergency_doctors(db, appointment.preferred_doctor_id)

        sent = 0
        failed = 0
        for doctor in doctors:
            if not doctor.user or not doctor.user.email:
                continue
            try:
                await send_emergency_alert_email(
                    doctor.user.email, doctor.user.full_name, patient_name, appointment.id
                )
                sent += 1
            except Exception as e:
                failed += 1
                logger.error(f"❌ Failed to alert doctor {doctor.id}: {str(e)}")

        logger.info(f"📧 Emergency {appointment_id}: {sent} alerts sent, {failed} failed")
        return {"sent": sent, "failed": failed, "skipped": False}
    finally:
        db.close()


async def expire_stale_emergencies_task(ctx):
    """
    Cron job to cancel emergency cases that waited too long without a doctor
    and refund the reserved consultation.
    """
    from .services.emergency_reconciliation import expire_stale_emergencies

    db = SessionLocal()
    try:
        summary = expire_stale_emergencies(db)
        if summary["expired"]:
            logger.info(f"Emergency expiry complete: {summary}")
        return summary
    except Exception as e:
        logger.error(f"❌ Emergency expiry failed: {str(e)}")
        raise
    finally:
        db.close()


async def reset_emergency_allowances_task(ctx):
    """
    Daily cron job to refill emergency consultation allowances for users
    whose 30-day plan cycle has rolled over, even when they are inactive.
    """
    from .domain.billing.stripe_service import stripe_service
    from .domain.billing.subscription_service import SubscriptionService

    logger.info("🔄 Starting emergency allowance reset check")

    db = SessionLocal()
    try:
        summary = SubscriptionService(db, stripe_service).reset_allowances()
        logger.info(f"Emergency allowance reset complete: {summary}")
        return summary
    except Exception as e:
        logger.error(f"❌ Emergency allowance reset failed: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


class WorkerSettings:
    """ARQ Worker Settings"""

    functions = [
        send_emergency_alert_emails_task,
        expire_stale_emergencies_task,
        reset_emergency_allowances_task,
    ]
    redis_settings = get_redis_settings()

    max_jobs = int(os.getenv("ARQ_MAX_JOBS", "20"))
    job_timeout = int(os.getenv("ARQ_JOB_TIMEOUT", "300"))
    keep_result = int(os.getenv("ARQ_KEEP_RESULT", "3600"))

    health_check_interval = 60

    max_tries = 3

    cron_jobs = [
        cron(expire_stale_emergencies_task, minute=set(range(0, 60, 5))),  # every 5 minutes
        cron(reset_emergency_allowances_task, hour=0, minute=10),  # 12:10 AM UTC
    ]

    logger.info(f"🔧 ARQ Worker configured: max_jobs={max_jobs}, timeout={job_timeout}s")
