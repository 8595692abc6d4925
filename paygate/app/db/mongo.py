"""
Document store connection.

MongoDB client for the reporting mirror, initialized through beanie.
"""

import logging

from beanie import init_beanie
from pymongo import AsyncMongoClient

from paygate.app.core.config import settings
from paygate.app.documents.transaction_report import TransactionReport

logger = logging.getLogger("paygate.mongo")

DOCUMENT_MODELS = [TransactionReport]

_client = None


async def init_document_store(client: AsyncMongoClient = None) -> AsyncMongoClient:
    """
    Connect to MongoDB and register the document models.

    Called from the application lifespan when the report mirror is enabled.
    """
    global _client
    _client = client or AsyncMongoClient(settings.mongo_url)
    await init_beanie(database=_client[settings.mongo_db], document_models=DOCUMENT_MODELS)
    logger.info("Document store initialized", extra={"database": settings.mongo_db})
    return _client


async def close_document_store():
    global _client
    if _client is not None:
        await _client.close()
        _client = None
