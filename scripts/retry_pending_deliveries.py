import sys

from app.core.logging import configure_logging, mask_email
from app.core.config import settings
from app.db.database import SessionLocal
from app.services.assessment import pending_deliveries
from app.services.delivery import build_default_pipeline

"""
CLI usage:
python -m scripts.retry_pending_deliveries [--dry-run]
Re-runs PDF + email delivery for every submitted assessment whose report
was not emailed yet (SUBMITTED, PDF_GENERATED, PDF_FAILED, EMAIL_FAILED).
"""

def main():
    dry_run = "--dry-run" in sys.argv[1:]
    configure_logging(environment=settings.environment)
    with SessionLocal() as db:
        pending = [(a.id, a.status.value, a.user_email) for a in pending_deliveries(db)]
    if not pending:
        print("No pending deliveries")
        return
    print(f"Found {len(pending)} pending deliveries")
    if dry_run:
        for assessment_id, status, email in pending:
            print(f"  {assessment_id} {status} {mask_email(email)}")
        return
    pipeline = build_default_pipeline(SessionLocal)
    failed = 0
    for assessment_id, status, _ in pending:
        outcome = pipeline.run(assessment_id)
        state = outcome.status.value if outcome.status else "UNKNOWN"
        print(f"  {assessment_id}: {status} -> {state}" + (f" ({outcome.error})" if outcome.error else ""))
        if not outcome.delivered:
            failed += 1
    print(f"Delivered {len(pending) - failed}/{len(pending)}")
    if failed:
        sys.exit(1)

if __name__ == '__main__':
    main()
