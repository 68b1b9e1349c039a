"""
Add emergency lifecycle fields to appointments

- appointments.preferred_doctor_id: doctor the patient asked for (notification target only)
- appointments.allowance_reserved: whether the case consumed a plan consultation
- appointments.cancellation_reason: patient_cancelled, admin_cancelled, timeout
- appointments.accepted_at / completed_at
- partial index over waiting emergency cases for the doctor waiting room
- unique partial index allowing one open emergency per patient
"""

import sys
from pathlib import Path

# Add the repo root to sys.path so "cnvidas" is importable
CURRENT_DIR = Path(__file__).resolve().parent
ROOT_DIR = CURRENT_DIR.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import text

from cnvidas.database import engine

COLUMNS = [
    ("preferred_doctor_id", "INTEGER REFERENCES doctors(id) ON DELETE SET NULL"),
    ("allowance_reserved", "BOOLEAN NOT NULL DEFAULT FALSE"),
    ("cancellation_reason", "VARCHAR(50)"),
    ("accepted_at", "TIMESTAMP"),
    ("completed_at", "TIMESTAMP"),
]


def upgrade():
    with engine.connect() as conn:
        for name, definition in COLUMNS:
            conn.execute(text(f"ALTER TABLE appointments ADD COLUMN IF NOT EXISTS {name} {definition}"))

        # Emergency rows written before the waiting state existed were stored as scheduled
        conn.execute(
            text(
                """
                UPDATE appointments
                SET status = 'waiting'
                WHERE is_emergency = TRUE AND status = 'scheduled' AND doctor_id IS NULL
                """
            )
        )
        conn.execute(
            text(
                """
                CREATE INDEX IF NOT EXISTS ix_appointments_emergency_waiting
                ON appointments (date)
                WHERE is_emergency = TRUE AND status = 'waiting'
                """
            )
        )
        # Fails while any patient still has two open emergencies; cancel the extra rows first
        conn.execute(
            text(
                """
                CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_emergency
                ON appointments (user_id)
                WHERE is_emergency AND status IN ('waiting', 'in_progress')
                """
            )
        )
        conn.commit()
        print("Migration add_emergency_lifecycle_fields applied successfully")


def downgrade():
    with engine.connect() as conn:
        conn.execute(text("DROP INDEX IF EXISTS uq_appointments_active_emergency"))
        conn.execute(text("DROP INDEX IF EXISTS ix_appointments_emergency_waiting"))
        for name, _definition in reversed(COLUMNS):
            conn.execute(text(f"ALTER TABLE appointments DROP COLUMN IF EXISTS {name}"))
        conn.commit()
        print("Migration add_emergency_lifecycle_fields rolled back")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Manage emergency lifecycle migration")
    parser.add_argument("--down", action="store_true", help="Rollback the migration")
    args = parser.parse_args()

    if args.down:
        downgrade()
    else:
        upgrade()
