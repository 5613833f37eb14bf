import logging
from functools import lru_cache

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

# Collection names inside the configured database
USERS = "users"
TODOS = "todos"


# One client per process; MongoClient is thread-safe and pools its own connections
@lru_cache(maxsize=1)
def get_client() -> MongoClient:
    logger.info("Connecting to MongoDB at %s", config.MONGODB_URI)
    return MongoClient(config.MONGODB_URI)


# Dependency handing the application database to route handlers
def get_db() -> Database:
    return get_client()[config.MONGODB_DB]


def ensure_indexes(db: Database) -> None:
    # Unique emails are enforced by the store as well as by the registration check
    db[USERS].create_index([("email", ASCENDING)], unique=True)
    db[TODOS].create_index([("ownerId", ASCENDING)])
    logger.info("Indexes ensured on database '%s'", db.name)
