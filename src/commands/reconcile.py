import asyncio
import json
import logging
import sys
from typing import List, Optional

from src.config import configure_logging
from src.dependencies import connect_services

configure_logging()
logger = logging.getLogger(__name__)


async def reconcile(course_ids: Optional[List[str]] = None) -> dict:
    services = await connect_services()
    try:
        report = await services.sweeper.run_once(course_ids)
    finally:
        await services.close()

    print(json.dumps(report.to_dict(), indent=2))
    return report.to_dict()


if __name__ == "__main__":
    # Usage: python -m src.commands.reconcile [courseId ...]
    course_ids = sys.argv[1:] or None
    result = asyncio.run(reconcile(course_ids))
    sys.exit(1 if result["errors"] else 0)
