"""
Two-phase update handles returned by DocumentStore.

An UpdateHandle carries a private snapshot of the fetched document plus a
deep copy the caller may mutate freely. commit() diffs the update against
the snapshot, then applies ``$set`` and ``$push`` (changelog) atomically
against the filter used for the fetch.

A SubdocumentUpdateHandle adds the position of one array element inside
that copy. ``subdocument_reference`` is the element object itself, so
mutating it is visible through ``document_reference`` and gets committed
with it.
"""

import copy
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, Optional

from ..changelog import RequestContext
from ..exceptions import UpdateError

if TYPE_CHECKING:
    from .document_store import DocumentStore


def get_path(document: Mapping[str, Any], path: str) -> Any:
    """Read a dotted path (``"a.b"``) from nested mappings; None when absent."""
    node: Any = document
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


class UpdateHandle:
    """
    Result of DocumentStore.find_one_and_update().

    Attributes:
        original_document: Deep copy of the stored document, safe to mutate
        filter: Native filter the document was fetched with
        committed: True once commit() has been called
    """

    def __init__(
        self,
        store: "DocumentStore[Any]",
        rc: RequestContext,
        filter: dict[str, Any],
        snapshot: dict[str, Any],
        document_id: Optional[Any] = None,
    ) -> None:
        self._store = store
        self._rc = rc
        self._snapshot = snapshot
        self.filter = filter
        self.document_id = document_id
        self.original_document: dict[str, Any] = copy.deepcopy(snapshot)
        self.committed = False

    async def commit(self, document_update: Optional[Mapping[str, Any] | Any] = None) -> dict[str, Any]:
        """
        Persist ``document_update`` (defaults to the mutated original_document).

        May only be called once. The handle is consumed even when the write
        fails (validation error, document no longer matching the filter), and
        nothing is retried; call find_one_and_update() again for a fresh
        handle.

        Returns:
            The document as stored after the update

        Raises:
            UpdateError: If already committed or the document no longer matches
        """
        if self.committed:
            raise UpdateError(
                self._store.document_name,
                document_id=self.document_id,
                reason="update handle was already committed",
            )
        self.committed = True

        update = self.original_document if document_update is None else document_update
        return await self._store._commit(
            self._rc, self.filter, self._snapshot, update, document_id=self.document_id
        )


class SubdocumentUpdateHandle:
    """
    Result of DocumentStore.find_one_subdocument_and_update().

    Attributes:
        path: Array field holding the subdocument
        index: Position of the subdocument in that array
    """

    def __init__(
        self,
        handle: UpdateHandle,
        path: str,
        index: int,
        predicate: Callable[[Any], bool],
    ) -> None:
        self._handle = handle
        self._predicate = predicate
        self.path = path
        self.index = index

    @property
    def document_reference(self) -> dict[str, Any]:
        return self._handle.original_document

    @property
    def subdocument_reference(self) -> Any:
        return get_path(self.document_reference, self.path)[self.index]

    def set_subdocument(self, value: Any) -> None:
        """Replace the subdocument inside document_reference."""
        get_path(self.document_reference, self.path)[self.index] = value

    @property
    def committed(self) -> bool:
        return self._handle.committed

    async def commit(self, document_update: Optional[Mapping[str, Any] | Any] = None) -> dict[str, Any]:
        """
        Commit the owning document (document_reference by default).

        Shares the one-shot handle: a failed commit cannot be retried.
        """
        return await self._handle.commit(document_update)

    async def commit_and_return_subdocument(
        self, document_update: Optional[Mapping[str, Any] | Any] = None
    ) -> Optional[Any]:
        """
        Commit, then return the stored subdocument matching the predicate
        (None if the update removed it).
        """
        updated = await self.commit(document_update)
        items = get_path(updated, self.path) or []
        return next((item for item in items if self._predicate(item)), None)
