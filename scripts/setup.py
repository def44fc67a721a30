#!/usr/bin/env python3
"""Setup script for the tour stops API."""

import asyncio
import logging
import sys
from pathlib import Path

# Add the server directory to the Python path
server_dir = Path(__file__).parent.parent / "server"
sys.path.insert(0, str(server_dir))

from alembic import command
from alembic.config import Config
from sqlalchemy import func, select

from tour_api.core.database import async_session_factory, close_db
from tour_api.models import Tour

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def setup_database():
    """Bring the database schema up to date."""
    logger.info("Setting up database...")

    try:
        alembic_cfg = Config(str(server_dir / "db" / "alembic.ini"))
        alembic_cfg.set_main_option("script_location", str(server_dir / "db" / "alembic"))

        # env.py drives its own event loop, so this must run outside one
        logger.info("Running database migrations...")
        command.upgrade(alembic_cfg, "head")
        logger.info("Database migrations completed")

    except Exception as e:
        logger.error(f"Database setup failed: {e}")
        raise


async def create_sample_data():
    """Create a sample tour to explore the API with."""
    logger.info("Creating sample data...")

    async with async_session_factory() as db:
        try:
            existing_tours = await db.scalar(select(func.count()).select_from(Tour))
            if existing_tours:
                logger.info("Sample data already exists, skipping...")
                return

            # Stops are added through the API so they get enriched
            db.add(Tour(
                title="Pacific Northwest Food Trail",
                activities=["coffee roasting", "food carts", "farmers market"],
                stops=[],
            ))
            await db.commit()
            logger.info("Sample data created successfully!")

        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to create sample data: {e}")
            raise

    await close_db()


def main():
    """Main setup function."""
    logger.info("Starting tour stops API setup...")

    setup_database()
    asyncio.run(create_sample_data())

    logger.info("Setup completed successfully!")
    logger.info("You can now start the API server with: cd server && uvicorn tour_api.main:app --reload")


if __name__ == "__main__":
    main()
