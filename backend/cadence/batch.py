"""
Batch runner for recurring detection across many users.

Each user runs on its own session and thread; users never share state, so
one user's failure is recorded and the rest carry on.

Usage:
    python -m cadence.batch USER_ID [USER_ID ...] [--promote] [--workers N]
"""

import argparse
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from cadence.config import settings
from cadence.database import SessionLocal, init_db
from cadence.services import recurring_service, subscription_service
from cadence.services.recurring_service import TransactionHistoryError

logger = logging.getLogger(__name__)


def run_for_user(
    user_id: str,
    promote: bool = False,
    session_factory: Callable[[], Session] = SessionLocal
) -> Dict:
    """Run detection (and optionally promotion) for one user. Never raises."""
    db = session_factory()
    try:
        summary = recurring_service.run_detection(db, user_id)
        if promote:
            promoted = subscription_service.promote_detected_patterns(
                db, user_id, [p.merchant for p in summary.patterns]
            )
            summary.subscriptions_promoted = len(promoted)
        return {"user_id": user_id, "ok": True, "summary": summary, "error": None}
    except TransactionHistoryError as e:
        logger.error("Skipping user %s: %s", user_id, e)
        return {"user_id": user_id, "ok": False, "summary": None, "error": str(e)}
    except Exception as e:
        logger.exception("Detection run failed for user %s", user_id)
        return {"user_id": user_id, "ok": False, "summary": None, "error": str(e)}
    finally:
        db.close()


def run_batch(
    user_ids: Sequence[str],
    promote: bool = False,
    max_workers: Optional[int] = None,
    session_factory: Callable[[], Session] = SessionLocal
) -> List[Dict]:
    """Run detection for every user in parallel. Results keep the input order."""
    max_workers = max_workers or settings.batch_max_workers

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [
            executor.submit(run_for_user, user_id, promote, session_factory)
            for user_id in user_ids
        ]
        results = [f.result() for f in futures]

    failed = sum(1 for r in results if not r["ok"])
    logger.info("Batch finished: %d users, %d failed", len(results), failed)
    return results


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Detect recurring charges for a set of users.")
    parser.add_argument("user_ids", nargs="+", help="Users to analyze")
    parser.add_argument("--promote", action="store_true", help="Track detected patterns as subscriptions")
    parser.add_argument("--workers", type=int, default=None, help="Parallel users (default from settings)")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db()

    results = run_batch(args.user_ids, promote=args.promote, max_workers=args.workers)
    for result in results:
        if result["ok"]:
            summary = result["summary"]
            print(f"{result['user_id']}: {summary.patterns_detected} patterns, {len(summary.errors)} errors")
        else:
            print(f"{result['user_id']}: FAILED ({result['error']})")

    return 1 if any(not r["ok"] for r in results) else 0


if __name__ == "__main__":
    sys.exit(main())
