import os
import logging
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConnectionFailure, PyMongoError

logger = logging.getLogger(__name__)

# Driver-level logs are noisy at INFO
logging.getLogger('pymongo').setLevel(logging.WARNING)

DATABASE_NAME = os.getenv('MONGODB_DATABASE', 'authflow')
USERS_COLLECTION_NAME = 'users'

# Every credential operation is bounded by these; no request waits on MongoDB indefinitely
CLIENT_OPTIONS = {
    'tz_aware': True,
    'serverSelectionTimeoutMS': 5000,
    'connectTimeoutMS': 5000,
    'socketTimeoutMS': 10000,
    'waitQueueTimeoutMS': 5000,
    'maxPoolSize': 20,
    'minPoolSize': 0,
    'maxIdleTimeMS': 30000,
    'retryWrites': True,
    'retryReads': True,
}

_client_cache: MongoClient | None = None
_connected_once = False
_misconfigured = False


def reset_client():
    """Forget the cached client and any earlier configuration failure."""
    global _client_cache, _connected_once, _misconfigured
    _client_cache = None
    _connected_once = False
    _misconfigured = False


def _ping(client: MongoClient) -> bool:
    try:
        client.admin.command('ping')
        return True
    except PyMongoError:
        return False


def get_mongodb_client() -> MongoClient | None:
    """Return a healthy MongoDB client, or None when the database is unreachable.

    A cached client is reused while it answers ping. A missing MONGO_URL or a
    failure on the very first connection is treated as misconfiguration and
    not retried; later failures reconnect on the next call.
    """
    global _client_cache, _connected_once, _misconfigured

    if _client_cache is not None:
        if _ping(_client_cache):
            return _client_cache
        logger.warning("[MONGODB] Cached client failed ping, reconnecting")
        _client_cache = None

    if _misconfigured:
        return None

    mongo_url = os.getenv('MONGO_URL')
    if not mongo_url:
        logger.error("[MONGODB] MONGO_URL not configured")
        _misconfigured = True
        return None

    try:
        client = MongoClient(mongo_url, **CLIENT_OPTIONS)
        client.admin.command('ping')
    except (ConnectionFailure, PyMongoError) as e:
        if not _connected_once:
            logger.error("[MONGODB] Initial connection failed", extra={"error": str(e)[:200]})
            _misconfigured = True
        else:
            logger.warning("[MONGODB] Reconnection failed", extra={"error": str(e)[:200]})
        return None

    if not _connected_once:
        logger.info("[MONGODB] Connected", extra={"database": DATABASE_NAME})
    _connected_once = True
    _client_cache = client
    return client


def get_database() -> Database | None:
    """Return the credential database, or None when MongoDB is unavailable."""
    client = get_mongodb_client()
    if client is None:
        return None
    return client[DATABASE_NAME]
