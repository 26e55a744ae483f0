#!/usr/bin/env python3
"""
Cron entry point: runs the alert scan and the pending-closure report and logs
the results. Read-only; safe to run while the API is serving traffic.
Usage: python scripts/scan_alerts.py [--program-id N] [--campus-id N]
"""

import argparse
import asyncio
import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ipms.config import settings
from ipms.database import async_session_maker, engine
from ipms.schemas.alert import AlertScope
from ipms.services import alerts

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("ipms.scan_alerts")


async def run(scope: AlertScope) -> int:
    async with async_session_maker() as session:
        found = await alerts.scan(session, scope)
        report = await alerts.pending_closure_report(session, scope)
    await engine.dispose()

    for alert in found:
        log = logger.warning if alert.type == "warning" else logger.info
        log("[%s] %s: %s", alert.id, alert.title, alert.description)
    logger.info(
        "pending closure: %d overdue (%d critical, %d low), mean delay %d days",
        report.total,
        report.critical,
        report.low,
        report.mean_days_late,
    )
    return 1 if report.critical else 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Scan practices and report alerts")
    parser.add_argument("--program-id", type=int, default=None)
    parser.add_argument("--campus-id", type=int, default=None)
    args = parser.parse_args()
    return asyncio.run(run(AlertScope(program_id=args.program_id, campus_id=args.campus_id)))


if __name__ == "__main__":
    sys.exit(main())
