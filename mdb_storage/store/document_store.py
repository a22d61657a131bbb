"""
Document store: schema-validated CRUD on one collection with a per-document
changelog.

Every insert appends a changelog entry with no changes (provenance) and
every committed update appends one entry with the field-level edits it
made. Updates are two-phase: fetch a handle, mutate its copy, commit.

Example:
    orders = DocumentStore(connection, "Order", "orders", OrderModel,
                           indexes=[{"key": {"companyId": 1}}])

    await orders.insert_one(rc, {"documentId": oid, "status": "Pending"})

    handle = await orders.find_one_and_update(rc, {"documentId": oid})
    handle.original_document["status"] = "Cancelled"
    updated = await handle.commit()
"""

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel
from pymongo import ReturnDocument

from ..changelog import ChangelogBuilder, RequestContext
from ..constants import (
    CHANGELOGS_FIELD,
    DEFAULT_ID_FIELD,
    DEFAULT_PAGE,
    EXCLUDE_PRIMARY_KEY,
    PRIMARY_KEY_FIELD,
)
from ..database.connection import DatabaseConnection
from ..exceptions import NotFoundError, UpdateError, ValidationError
from ..indexes import CollectionBootstrapper, IndexPlan, normalize_keys
from ..observability import get_logger as get_contextual_logger
from ..observability import timed_operation
from ..query import FilterTranslator
from ..serialization import serialize_document
from ..validation import DocumentValidator, as_validator
from .handles import SubdocumentUpdateHandle, UpdateHandle, get_path

logger = logging.getLogger(__name__)
contextual_logger = get_contextual_logger(__name__)

T = TypeVar("T")

Document = dict[str, Any]


def _as_plain_dict(document: Mapping[str, Any] | Any) -> dict[str, Any]:
    if isinstance(document, BaseModel):
        return document.model_dump(exclude_unset=True)
    return dict(document)


class DocumentStore(Generic[T]):
    """
    CRUD facade for one collection.

    Args:
        connection: Connection handle shared by the application's stores
        document_name: Human readable document type used in errors ("Order")
        collection_name: MongoDB collection name
        schema: DocumentValidator, pydantic model class or JSON Schema
        indexes: Desired secondary indexes (mappings with ``key``, IndexModel...)
        keep_changelog: Record changelogs (defaults to the connection config)
        id_field: Field naming a document in NotFoundError/UpdateError
        filter_translator: Translator for semantic filters
        changelog_builder: Builder for changelog entries
        auto_bootstrap: Schedule index bootstrap on construction

    The bootstrap runs as a background task (``bootstrap_task``) when an
    event loop is running; the store is usable immediately. A failed
    bootstrap is logged and its exception stays on the task for the caller
    to await. Without a running loop call ``await store.bootstrap()``.
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        document_name: str,
        collection_name: str,
        schema: DocumentValidator[T] | type[BaseModel] | Mapping[str, Any],
        indexes: Iterable[Any] = (),
        *,
        keep_changelog: Optional[bool] = None,
        id_field: str = DEFAULT_ID_FIELD,
        filter_translator: Optional[FilterTranslator] = None,
        changelog_builder: Optional[ChangelogBuilder] = None,
        auto_bootstrap: bool = True,
    ) -> None:
        self._connection = connection
        self.document_name = document_name
        self.collection_name = collection_name
        self.id_field = id_field
        self.keep_changelog = (
            connection.config.keep_changelog if keep_changelog is None else keep_changelog
        )
        self.default_page_size = connection.config.default_page_size

        # Stored documents carry changelogs; accepting them keeps read-back documents valid
        self._validator: DocumentValidator[T] = as_validator(schema).with_optional_field(
            CHANGELOGS_FIELD
        )
        self._translator = filter_translator or FilterTranslator()
        self._changelog_builder = changelog_builder or ChangelogBuilder()
        self._bootstrapper = CollectionBootstrapper(connection, collection_name, indexes)

        self.bootstrap_task: Optional[asyncio.Task] = None
        if auto_bootstrap:
            self.bootstrap_task = self._schedule_bootstrap()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.document_name!r}, {self.collection_name!r})"

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    def _schedule_bootstrap(self) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                f"No running event loop; bootstrap of '{self.collection_name}' "
                f"must be awaited explicitly"
            )
            return None

        task = loop.create_task(self.bootstrap(), name=f"bootstrap:{self.collection_name}")
        task.add_done_callback(self._report_bootstrap_failure)
        return task

    def _report_bootstrap_failure(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                f"Index bootstrap failed for collection '{self.collection_name}': {error}",
                exc_info=error,
            )

    async def bootstrap(self) -> IndexPlan:
        """Ensure the collection exists and converge its indexes."""
        return await self._bootstrapper.run()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _collection(self) -> Any:
        return await self._connection.collection(self.collection_name)

    def _translate(self, filter: Optional[Mapping[str, Any]]) -> dict[str, Any]:
        return self._translator.translate(filter)

    def _pinned_id(self, filter: Optional[Mapping[str, Any]]) -> Optional[Any]:
        if not filter:
            return None
        if self.id_field in filter:
            return filter[self.id_field]
        return filter.get(PRIMARY_KEY_FIELD)

    def validate(self, document: Mapping[str, Any] | Any) -> Document:
        """
        Validate a caller supplied document.

        Returns:
            The document to persist: unknown fields stripped, no changelogs

        Raises:
            ValidationError: If the document does not satisfy the schema
        """
        result = self._validator.validate(_as_plain_dict(document))
        if not result.ok:
            raise ValidationError(
                self.document_name,
                result.error or "invalid document",
                context={"collection_name": self.collection_name},
            )
        validated = dict(result.document or {})
        validated.pop(CHANGELOGS_FIELD, None)
        return validated

    def to_model(self, document: Mapping[str, Any]) -> T:
        """Validate a stored document into the schema's value type."""
        result = self._validator.validate(document)
        if not result.ok:
            raise ValidationError(
                self.document_name,
                result.error or "invalid document",
                context={"collection_name": self.collection_name},
            )
        return result.value

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @timed_operation("storage.insert_one")
    async def insert_one(self, rc: RequestContext, document: Mapping[str, Any] | Any) -> Document:
        """
        Validate, serialize and insert a document.

        Returns:
            The stored document without the internal ``_id``
        """
        to_store = serialize_document(self.validate(document))
        if self.keep_changelog:
            # Empty changes: records where the document came from
            to_store[CHANGELOGS_FIELD] = [self._changelog_builder.build(rc, {}, {}).to_dict()]

        collection = await self._collection()
        result = await collection.insert_one(to_store)
        contextual_logger.debug(
            f"Inserted {self.document_name}",
            extra={"collection_name": self.collection_name, "inserted_id": result.inserted_id},
        )

        return {k: v for k, v in to_store.items() if k != PRIMARY_KEY_FIELD}

    async def _fetch_one(
        self, query: dict[str, Any], filter: Optional[Mapping[str, Any]]
    ) -> Document:
        collection = await self._collection()
        document = await collection.find_one(query, projection=EXCLUDE_PRIMARY_KEY)
        if document is None:
            raise NotFoundError(
                self.document_name,
                document_id=self._pinned_id(filter),
                context={"collection_name": self.collection_name},
            )
        return document

    @timed_operation("storage.find_one")
    async def find_one(self, filter: Optional[Mapping[str, Any]] = None) -> Document:
        """
        Fetch the first document matching ``filter``.

        Raises:
            NotFoundError: If nothing matches
        """
        return await self._fetch_one(self._translate(filter), filter)

    @timed_operation("storage.find_many")
    async def find_many(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        sort: Optional[Mapping[str, Any] | list[tuple[str, Any]]] = None,
        limit: Optional[int] = None,
        page: int = DEFAULT_PAGE,
    ) -> list[Document]:
        """
        Fetch one page of matching documents.

        Args:
            filter: Semantic filter (see FilterTranslator)
            sort: ``{field: direction}`` or ``[(field, direction)]``; natural order if empty
            limit: Page size (defaults to the configured page size, 50)
            page: 1-indexed page number; pages past the end are empty

        Raises:
            ValueError: If limit or page is below 1
        """
        limit = self.default_page_size if limit is None else limit
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")

        collection = await self._collection()
        cursor = collection.find(self._translate(filter), projection=EXCLUDE_PRIMARY_KEY)
        if sort:
            cursor = cursor.sort(normalize_keys(sort))
        cursor = cursor.skip(limit * (page - 1)).limit(limit)
        return await cursor.to_list(length=limit)

    @timed_operation("storage.find_one_and_update")
    async def find_one_and_update(
        self, rc: RequestContext, filter: Optional[Mapping[str, Any]] = None
    ) -> UpdateHandle:
        """
        Fetch a document for update.

        Returns:
            UpdateHandle whose ``original_document`` may be mutated and
            passed to ``commit()``

        Raises:
            NotFoundError: If nothing matches
        """
        query = self._translate(filter)
        snapshot = await self._fetch_one(query, filter)
        return UpdateHandle(self, rc, query, snapshot, document_id=self._pinned_id(filter))

    @timed_operation("storage.commit")
    async def _commit(
        self,
        rc: RequestContext,
        query: dict[str, Any],
        snapshot: Document,
        document_update: Mapping[str, Any] | Any,
        document_id: Optional[Any] = None,
    ) -> Document:
        before = {k: v for k, v in snapshot.items() if k != CHANGELOGS_FIELD}

        changes = _as_plain_dict(document_update)
        changes.pop(CHANGELOGS_FIELD, None)
        changes.pop(PRIMARY_KEY_FIELD, None)
        serialized_changes = serialize_document(changes)

        update: dict[str, Any] = {}
        if serialized_changes:
            update["$set"] = serialized_changes
        if self.keep_changelog:
            changelog = self._changelog_builder.build(
                rc, serialize_document(before), serialized_changes
            )
            update["$push"] = {CHANGELOGS_FIELD: changelog.to_dict()}

        collection = await self._collection()
        if update:
            result = await collection.find_one_and_update(
                query,
                update,
                projection=EXCLUDE_PRIMARY_KEY,
                return_document=ReturnDocument.AFTER,
            )
        else:
            result = await collection.find_one(query, projection=EXCLUDE_PRIMARY_KEY)

        if result is None:
            contextual_logger.warning(
                f"Update of {self.document_name} matched no document",
                extra={"collection_name": self.collection_name, "document_id": document_id},
            )
            raise UpdateError(
                self.document_name,
                document_id=document_id,
                context={"collection_name": self.collection_name},
            )
        return result

    # ------------------------------------------------------------------
    # Subdocuments
    # ------------------------------------------------------------------

    async def _aggregate_subdocuments(
        self,
        path: str,
        parent_filter: Optional[Mapping[str, Any]],
        sub_filter: Optional[Mapping[str, Any]],
        limit: Optional[int] = None,
    ) -> list[Any]:
        sub_match = {f"{path}.{key}": value for key, value in (sub_filter or {}).items()}
        pipeline: list[dict[str, Any]] = [
            {"$match": self._translate(parent_filter)},
            {"$unwind": f"${path}"},
            {"$match": sub_match},
            {"$project": {path: 1, PRIMARY_KEY_FIELD: 0}},
        ]
        if limit is not None:
            pipeline.append({"$limit": limit})

        collection = await self._collection()
        documents = await collection.aggregate(pipeline).to_list(length=None)
        return [get_path(document, path) for document in documents]

    @timed_operation("storage.find_many_subdocuments")
    async def find_many_subdocuments(
        self,
        path: str,
        parent_filter: Optional[Mapping[str, Any]] = None,
        sub_filter: Optional[Mapping[str, Any]] = None,
    ) -> list[Any]:
        """
        Return the elements of the array at ``path`` (across all matching
        parents) that match ``sub_filter``. Keys of ``sub_filter`` are
        relative to the subdocument.
        """
        return await self._aggregate_subdocuments(path, parent_filter, sub_filter)

    @timed_operation("storage.find_one_subdocument")
    async def find_one_subdocument(
        self,
        path: str,
        parent_filter: Optional[Mapping[str, Any]] = None,
        sub_filter: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Return the first subdocument find_many_subdocuments() would return.

        Raises:
            NotFoundError: If there is none
        """
        subdocuments = await self._aggregate_subdocuments(path, parent_filter, sub_filter, limit=1)
        if not subdocuments:
            raise NotFoundError(
                self.document_name,
                document_id=self._pinned_id(parent_filter),
                subdocument_path=path,
                subdocument_filter=dict(sub_filter) if sub_filter else None,
                context={"collection_name": self.collection_name},
            )
        return subdocuments[0]

    @timed_operation("storage.find_one_subdocument_and_update")
    async def find_one_subdocument_and_update(
        self,
        rc: RequestContext,
        parent_filter: Optional[Mapping[str, Any]],
        path: str,
        predicate: Callable[[Any], bool],
    ) -> SubdocumentUpdateHandle:
        """
        Fetch a parent document for update and locate the first element of
        its ``path`` array satisfying ``predicate``.

        Raises:
            NotFoundError: If the parent or the subdocument does not exist
        """
        handle = await self.find_one_and_update(rc, parent_filter)

        items = get_path(handle.original_document, path)
        if not isinstance(items, list):
            items = []
        index = next((i for i, item in enumerate(items) if predicate(item)), None)

        if index is None:
            raise NotFoundError(
                self.document_name,
                document_id=handle.document_id,
                subdocument_path=path,
                context={"collection_name": self.collection_name},
            )
        return SubdocumentUpdateHandle(handle, path, index, predicate)


def make_storage(
    connection: DatabaseConnection,
    document_name: str,
    collection_name: str,
    schema: DocumentValidator[T] | type[BaseModel] | Mapping[str, Any],
    indexes: Iterable[Any] = (),
    keep_changelog: Optional[bool] = None,
) -> DocumentStore[T]:
    """Create a DocumentStore (and schedule its index bootstrap)."""
    return DocumentStore(
        connection,
        document_name,
        collection_name,
        schema,
        indexes,
        keep_changelog=keep_changelog,
    )
