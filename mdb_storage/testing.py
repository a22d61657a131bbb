"""
Helpers for test suites of applications built on mdb_storage.
"""

import logging
from typing import Any

from .changelog import RequestContext

logger = logging.getLogger(__name__)

MOCK_TOKEN = "******X-9a8dF2"
MOCK_IP = "192.168.0.66"
MOCK_ENDPOINT = "POST http://localhost:3333/resources/resourceId"


def make_mock_request_context(
    token: str = MOCK_TOKEN, ip: str = MOCK_IP, endpoint: str = MOCK_ENDPOINT
) -> RequestContext:
    """Request context for changelog attribution in tests."""
    return RequestContext(token=token, ip=ip, endpoint=endpoint)


async def clear_collections(database: Any) -> list[str]:
    """
    Delete every document of every collection in ``database``.

    Collections and their indexes are kept.

    Returns:
        Names of the cleared collections
    """
    names = await database.list_collection_names()
    for name in names:
        await database[name].delete_many({})
    logger.debug(f"Cleared {len(names)} collections")
    return names
