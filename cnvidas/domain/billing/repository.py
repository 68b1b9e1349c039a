"""Billing repository - Database operations for plans, subscriptions and payments"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Appointment, SubscriptionPlan, User
from .plan_benefits import DEFAULT_PLANS

logger = logging.getLogger(__name__)


class BillingRepository:
    """Repository for billing database operations"""

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def list_plans(db: Session) -> list[SubscriptionPlan]:
        return db.query(SubscriptionPlan).order_by(SubscriptionPlan.price.asc()).all()

    @staticmethod
    def get_plan(db: Session, plan_id: int) -> Optional[SubscriptionPlan]:
        return db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()

    @staticmethod
    def get_plan_by_name(db: Session, name: str) -> Optional[SubscriptionPlan]:
        return db.query(SubscriptionPlan).filter(SubscriptionPlan.name == name).first()

    @staticmethod
    def get_appointment_by_payment_intent(db: Session, payment_intent_id: str) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.payment_intent_id == payment_intent_id).first()

    @staticmethod
    def get_users_due_for_reset(db: Session, now: datetime) -> list[User]:
        return (
            db.query(User)
            .filter(
                User.subscription_status == "active",
                User.allowance_reset_date.isnot(None),
                User.allowance_reset_date <= now,
            )
            .all()
        )

    @staticmethod
    def seed_plans(db: Session) -> dict:
        """Insert the default plans that do not exist yet. Existing plans are left untouched"""
        created, skipped = [], []
        for plan_data in DEFAULT_PLANS:
            if db.query(SubscriptionPlan).filter(SubscriptionPlan.name == plan_data["name"]).first():
                skipped.append(plan_data["name"])
                continue
            db.add(SubscriptionPlan(**plan_data))
            created.append(plan_data["name"])

        if created:
            db.commit()
            logger.info(f"✅ Seeded subscription plans: {', '.join(created)}")
        return {"created": created, "skipped": skipped}
