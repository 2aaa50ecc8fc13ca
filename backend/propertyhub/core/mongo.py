import logging
from functools import lru_cache

from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection

from propertyhub.core.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_mongo_client() -> MongoClient:
    """Process-wide client; pymongo pools connections internally and connects lazily."""
    settings = get_settings()
    return MongoClient(
        settings.MONGODB_URI,
        maxPoolSize=settings.MONGODB_MAX_POOL_SIZE,
        serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
        tz_aware=True,
    )


def get_properties() -> Collection:
    """FastAPI dependency returning the Property collection."""
    settings = get_settings()
    return get_mongo_client()[settings.MONGODB_DB][settings.PROPERTY_COLLECTION]


def ensure_indexes(collection: Collection) -> None:
    collection.create_index([("id", ASCENDING)], unique=True, name="id_unique")
    collection.create_index([("price", ASCENDING)], name="price")
    collection.create_index([("type", ASCENDING)], name="type")
    collection.create_index([("town", ASCENDING), ("province", ASCENDING)], name="town_province")
    collection.create_index([("createdAt", DESCENDING)], name="created_desc")
    logger.info("Property indexes ensured on %s", collection.full_name)
