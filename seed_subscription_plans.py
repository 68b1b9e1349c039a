#!/usr/bin/env python3
"""
Create the default subscription plans (free, basic, premium) if missing
Usage: python seed_subscription_plans.py
"""

from cnvidas.database import Base, SessionLocal, engine
from cnvidas.domain.billing.repository import BillingRepository


def main():
    Base.metadata.create_all(bind=engine, checkfirst=True)
    db = SessionLocal()
    try:
        result = BillingRepository.seed_plans(db)
        print(f"✅ Created: {', '.join(result['created']) or 'none'}")
        print(f"⏭️  Already present: {', '.join(result['skipped']) or 'none'}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
