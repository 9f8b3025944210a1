"""
Drop the chat widget collections from the configured MongoDB database.

Usage: python clear_db.py [--yes]
"""
import asyncio
import logging
import sys
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv

from widget_engine.core.config import get_settings
from widget_engine.services.durable_store import DurableStore

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")
logger = logging.getLogger("clear_db")


async def drop_widget_collections(client: AsyncIOMotorClient, db_name: str, confirmed: bool) -> int:
    """Drop every widget collection present in `db_name`. Returns how many were dropped."""
    db = client[db_name]
    existing = set(await db.list_collection_names())
    targets = [name for name in DurableStore.COLLECTIONS if name in existing]

    if not targets:
        logger.info(f"No widget collections in {db_name}")
        return 0

    logger.warning(f"About to drop from {db_name}: {', '.join(targets)}")
    if not confirmed:
        answer = input("Visitor profiles and chat history will be lost. Type 'yes' to continue: ")
        if answer.strip().lower() != "yes":
            logger.info("Cancelled")
            return 0

    dropped = 0
    for name in targets:
        try:
            await db[name].drop()
            dropped += 1
            logger.info(f"Dropped {name}")
        except Exception as e:
            logger.error(f"Could not drop {name}: {e}")
    return dropped


async def main(confirmed: bool) -> int:
    settings = get_settings()
    if not settings.mongo_url:
        logger.error("MONGO_URL is not configured")
        return 1

    client = AsyncIOMotorClient(settings.mongo_url)
    try:
        await client.admin.command("ping")
        await drop_widget_collections(client, settings.mongo_db_name, confirmed)
    except Exception as e:
        logger.error(f"Database cleanup failed: {e}")
        return 1
    finally:
        client.close()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main("--yes" in sys.argv[1:])))
    except KeyboardInterrupt:
        logger.info("Cancelled by user")
