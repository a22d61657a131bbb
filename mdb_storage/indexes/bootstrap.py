"""
Collection bootstrap: make sure a collection exists and that its indexes
match a declared set.

Indexes present on the collection but not declared are dropped, declared
indexes that are missing are created in the background. The ``_id`` index
is never touched. Running the bootstrapper again after convergence does
nothing.
"""

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from pymongo.errors import CollectionInvalid

from ..database.connection import DatabaseConnection
from ..observability import record_operation
from .helpers import IndexSpecification, is_id_index, key_identity

logger = logging.getLogger(__name__)


@dataclass
class IndexPlan:
    """Index operations required to converge a collection."""

    to_create: list[IndexSpecification] = field(default_factory=list)
    to_drop: list[Mapping[str, Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_create and not self.to_drop


def plan_index_changes(
    desired: Iterable[IndexSpecification],
    existing: Sequence[Mapping[str, Any]],
) -> IndexPlan:
    """
    Compare desired and existing indexes by key pattern.

    Args:
        desired: Declared index specifications
        existing: Index documents as returned by ``list_indexes()``

    Returns:
        IndexPlan with the specifications to create and the existing index
        documents to drop
    """
    existing_identities = {key_identity(list(index["key"].items())) for index in existing}

    plan = IndexPlan()
    seen = set()
    for spec in desired:
        if spec.identity in seen:
            continue
        seen.add(spec.identity)
        if spec.identity not in existing_identities:
            plan.to_create.append(spec)

    for index in existing:
        keys = list(index["key"].items())
        if is_id_index(keys):
            continue
        if key_identity(keys) not in seen:
            plan.to_drop.append(index)

    return plan


class CollectionBootstrapper:
    """
    Converges one collection towards a desired index set.

    Example:
        bootstrapper = CollectionBootstrapper(
            connection, "orders", [{"key": {"companyId": 1}}]
        )
        plan = await bootstrapper.run()
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        collection_name: str,
        indexes: Iterable[IndexSpecification | Mapping[str, Any] | Any] = (),
    ) -> None:
        self._connection = connection
        self.collection_name = collection_name
        self.indexes = [IndexSpecification.coerce(index) for index in indexes]

    async def run(self) -> IndexPlan:
        """
        Ensure the collection exists, then converge its indexes.

        Errors from the driver propagate to the caller unchanged.
        """
        start_time = time.time()
        success = False
        try:
            await self.ensure_collection()
            plan = await self.ensure_indexes()
            success = True
            return plan
        finally:
            duration_ms = (time.time() - start_time) * 1000
            record_operation(
                "storage.bootstrap", duration_ms, success=success, collection=self.collection_name
            )

    async def ensure_collection(self) -> bool:
        """
        Create the collection if it does not exist.

        Returns:
            True if the collection was created by this call
        """
        database = await self._connection.database()
        collection_names = await database.list_collection_names()

        if self.collection_name in collection_names:
            return False

        logger.warning(f"Creating new collection '{self.collection_name}'")
        try:
            await database.create_collection(self.collection_name)
        except CollectionInvalid:
            # Another store instance created it between listing and creating
            logger.debug(f"Collection '{self.collection_name}' already exists")
            return False
        return True

    async def ensure_indexes(self) -> IndexPlan:
        """
        Create missing and drop undeclared indexes.

        Returns:
            The plan that was applied
        """
        collection = await self._connection.collection(self.collection_name)
        existing = await collection.list_indexes().to_list(None)
        plan = plan_index_changes(self.indexes, existing)

        if plan.to_create:
            logger.info(
                f"Creating {len(plan.to_create)} new indexes on '{self.collection_name}'"
            )
            await collection.create_indexes([spec.to_index_model() for spec in plan.to_create])

        if plan.to_drop:
            logger.info(f"Removing {len(plan.to_drop)} indexes on '{self.collection_name}'")
            for index in plan.to_drop:
                await collection.drop_index(index["name"])

        return plan
