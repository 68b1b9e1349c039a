#!/usr/bin/env python3
"""
Report emergency appointments whose status and doctor assignment disagree
Usage: python diagnose_emergency_status.py [--fix]
"""

import argparse

from cnvidas.database import SessionLocal
from cnvidas.services.emergency_reconciliation import diagnose_emergency_status, fix_emergency_status

SECTIONS = {
    "scheduled_emergencies": "Emergencies stuck in 'scheduled'",
    "waiting_with_doctor": "Waiting emergencies that already have a doctor",
    "in_progress_without_doctor": "In-progress emergencies without a doctor",
}


def print_report(report: dict):
    print("🔍 Emergency status diagnostics\n")
    print("Status counts:")
    for status, count in report["status_counts"].items():
        print(f"   - {status}: {count}")

    for key, title in SECTIONS.items():
        rows = report[key]
        print(f"\n{'❌' if rows else '✅'} {title}: {len(rows)}")
        for row in rows:
            print(f"   #{row['id']} patient={row['user_id']} doctor={row['doctor_id']} date={row['date']}")


def main():
    parser = argparse.ArgumentParser(description="Diagnose emergency appointment statuses")
    parser.add_argument("--fix", action="store_true", help="Normalize inconsistent rows")
    args = parser.parse_args()

    db = SessionLocal()
    try:
        report = diagnose_emergency_status(db)
        print_report(report)

        if not report["total_inconsistent"]:
            print("\n✅ Nothing to fix")
            return

        if args.fix:
            summary = fix_emergency_status(db)
            print(
                f"\n🔧 Fixed {summary['total_fixed']} rows "
                f"({summary['to_in_progress']} -> in_progress, {summary['to_waiting']} -> waiting)"
            )
        else:
            print("\n💡 Run with --fix to normalize these rows")
    finally:
        db.close()


if __name__ == "__main__":
    main()
