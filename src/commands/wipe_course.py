import asyncio
import json
import logging
import sys

from src.config import configure_logging
from src.dependencies import connect_services

configure_logging()
logger = logging.getLogger(__name__)


async def wipe_course(course_id: str) -> dict:
    services = await connect_services()
    try:
        report = await services.deletion.wipe_course(course_id)
    finally:
        await services.close()

    logger.info(
        f"Wiped course {course_id}: {len(report.deleted_documents)} documents, "
        f"{report.total_chunks_deleted} chunks"
    )
    print(json.dumps(report.to_dict(), indent=2))
    return report.to_dict()


if __name__ == "__main__":
    if len(sys.argv) < 2 or not sys.argv[1].strip():
        print("Usage: python -m src.commands.wipe_course <courseId>")
        sys.exit(1)

    result = asyncio.run(wipe_course(sys.argv[1].strip()))
    sys.exit(1 if result["errors"] else 0)
