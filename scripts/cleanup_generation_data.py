"""Delete all generation data from the database (development reset).

Run from the repository root:
    python scripts/cleanup_generation_data.py [--remove-files]

Children are deleted before parents: assets, generation tasks, then prompts.
With ``--remove-files`` the materialized images/videos under STORAGE_DIR are
removed as well.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import shutil
import sys

sys.path.insert(0, os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend"))

from sqlalchemy import delete  # noqa: E402

from app.config import get_settings  # noqa: E402
from app.database import close_db, get_session_factory  # noqa: E402
from app.models import Asset, GenerationTask, Prompt  # noqa: E402

logger = logging.getLogger("cleanup")


async def cleanup(remove_files: bool = False) -> dict[str, int]:
    counts: dict[str, int] = {}
    async with get_session_factory()() as session:
        for label, model in (("assets", Asset), ("generation tasks", GenerationTask), ("prompts", Prompt)):
            result = await session.execute(delete(model))
            counts[label] = result.rowcount
            logger.info("Deleted %d %s", result.rowcount, label)
        await session.commit()

    if remove_files:
        storage_dir = get_settings().STORAGE_DIR
        for subdir in ("images", "videos"):
            path = os.path.join(storage_dir, subdir)
            if os.path.isdir(path):
                shutil.rmtree(path)
                logger.info("Removed %s", path)
    return counts


async def main(remove_files: bool) -> int:
    logger.info("Starting generation data cleanup...")
    try:
        await cleanup(remove_files)
    except Exception:
        logger.exception("Error during cleanup")
        return 1
    finally:
        await close_db()
    logger.info("Cleanup finished successfully")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--remove-files", action="store_true",
                        help="also delete materialized asset files under STORAGE_DIR")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="[%(name)s] %(message)s")
    sys.exit(asyncio.run(main(args.remove_files)))
