"""MongoDB index management.

The unique indexes created here are what actually enforce one account per
email, per username and per linked external identity.
"""

from logging import getLogger

from pymongo.errors import PyMongoError

logger = getLogger(__name__)


def _find_conflict(collection, keys: list, name: str) -> str | None:
    """Name of an existing index that blocks ``name``: same name or same key spec."""
    wanted = dict(keys)
    for existing, info in collection.index_information().items():
        if existing == '_id_':
            continue
        if existing == name or dict(info.get('key', [])) == wanted:
            return existing
    return None


def create_index_safe(collection, keys: list, name: str, **kwargs) -> bool:
    """Create an index, replacing one that conflicts by name or by key spec.

    Lets an index change options (for example become unique) across deploys.
    """
    try:
        collection.create_index(keys, name=name, **kwargs)
        return True
    except PyMongoError as e:
        if "already exists" not in str(e) and "Conflict" not in str(e):
            raise

    conflicting = _find_conflict(collection, keys, name)
    if conflicting is None:
        logger.error("Failed to resolve index conflict", extra={"index": name})
        return False

    logger.warning("Replacing conflicting index", extra={"index": conflicting, "replacement": name})
    collection.drop_index(conflicting)
    collection.create_index(keys, name=name, **kwargs)
    return True


def ensure_all_indexes(db) -> bool:
    """Ensure indexes for the users collection. Called at app startup."""
    from adapter.mongodb.user_repository import MongoUserRepository

    return MongoUserRepository(db).ensure_indexes()
