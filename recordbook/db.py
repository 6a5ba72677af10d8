"""MongoDB connection, Beanie document registration and batch sessions."""
import logging
from contextlib import asynccontextmanager, contextmanager

from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError

from recordbook.config import settings
from recordbook.errors import ConflictError, InternalError
from recordbook.models import DOCUMENT_MODELS

logger = logging.getLogger(__name__)

DUPLICATE_KEY = 11000

_client = None


async def db_startup():
    """Connect to MongoDB and initialize Beanie ODM."""
    global _client
    _client = AsyncIOMotorClient(settings.mongodb_url)
    await init_beanie(
        database=_client[settings.mongodb_db_name],
        document_models=DOCUMENT_MODELS,
    )


async def db_shutdown():
    """Close MongoDB connection."""
    global _client
    if _client:
        _client.close()
        _client = None


@asynccontextmanager
async def batch_session():
    """Yield a session with an open transaction, or None when transactions are off.

    Without a transaction a failed bulk write can leave part of the batch
    stored; every write is keyed on its unique tuple so a retry is safe.
    """
    if not settings.mongodb_transactions or _client is None:
        yield None
        return
    async with await _client.start_session() as session:
        async with session.start_transaction():
            yield session


def _is_duplicate(exc: BulkWriteError) -> bool:
    write_errors = (exc.details or {}).get("writeErrors", [])
    return any(err.get("code") == DUPLICATE_KEY for err in write_errors)


@contextmanager
def translate_storage_errors(action: str, conflict_message: str):
    """Turn driver errors raised while writing a batch into the records taxonomy."""
    try:
        yield
    except DuplicateKeyError:
        logger.warning("%s lost a race on the unique index", action)
        raise ConflictError(conflict_message)
    except BulkWriteError as e:
        if _is_duplicate(e):
            logger.warning("%s lost a race on the unique index", action)
            raise ConflictError(conflict_message)
        logger.error("%s failed: %s", action, e.details)
        raise InternalError(
            "Batch write failed; re-check the recorded state before retrying"
        ) from e
    except PyMongoError as e:
        logger.error("%s failed: %s", action, e)
        raise InternalError(
            "Batch write failed; re-check the recorded state before retrying"
        ) from e
