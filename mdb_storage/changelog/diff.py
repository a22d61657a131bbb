"""
Structural differ for JSON/BSON-like values.

diff() walks two values in parallel and returns the edits that turn the
first into the second:

    New(path, rhs)                 key only present in ``after``
    Deleted(path, lhs)             key only present in ``before``
    Edited(path, lhs, rhs)         value replaced in place
    ArrayChange(path, index, item) element appended to / removed from an array

Arrays are compared by position. Surplus elements are reported first, from
the highest index down, followed by the shared prefix (also highest index
first). Reordering an array therefore shows up as in-place edits rather
than moves. Edit values are deep copies; they never alias either input.

The dict form of an edit (``to_dict``) is the one persisted in changelogs::

    {"kind": "E", "path": ["someField"], "lhs": "hey", "rhs": "hello"}
    {"kind": "A", "path": ["items"], "index": 1, "item": {"kind": "N", "rhs": {...}}}
"""

import copy
import math
from collections.abc import Mapping, MutableSequence, Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

Path = tuple[Any, ...]


@dataclass(frozen=True)
class Edit:
    """Base class of all edit records."""

    kind: ClassVar[str] = ""

    path: Path = field(default=())

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    def apply(self, root: Any) -> Any:
        """Apply this edit to ``root`` in place and return the (possibly new) root."""
        raise NotImplementedError


@dataclass(frozen=True)
class New(Edit):
    kind: ClassVar[str] = "N"

    rhs: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "path": list(self.path), "rhs": self.rhs}

    def apply(self, root: Any) -> Any:
        if not self.path:
            return copy.deepcopy(self.rhs)
        _resolve(root, self.path[:-1])[self.path[-1]] = copy.deepcopy(self.rhs)
        return root


@dataclass(frozen=True)
class Deleted(Edit):
    kind: ClassVar[str] = "D"

    lhs: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "path": list(self.path), "lhs": self.lhs}

    def apply(self, root: Any) -> Any:
        if not self.path:
            return None
        del _resolve(root, self.path[:-1])[self.path[-1]]
        return root


@dataclass(frozen=True)
class Edited(Edit):
    kind: ClassVar[str] = "E"

    lhs: Any = None
    rhs: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "path": list(self.path), "lhs": self.lhs, "rhs": self.rhs}

    def apply(self, root: Any) -> Any:
        if not self.path:
            return copy.deepcopy(self.rhs)
        _resolve(root, self.path[:-1])[self.path[-1]] = copy.deepcopy(self.rhs)
        return root


ArrayItem = Union[New, Deleted]


@dataclass(frozen=True)
class ArrayChange(Edit):
    """An element added at or removed from ``index`` of the array at ``path``."""

    kind: ClassVar[str] = "A"

    index: int = 0
    item: ArrayItem = field(default_factory=New)

    def to_dict(self) -> dict[str, Any]:
        item = {"kind": self.item.kind}
        if isinstance(self.item, New):
            item["rhs"] = self.item.rhs
        else:
            item["lhs"] = self.item.lhs
        return {"kind": self.kind, "path": list(self.path), "index": self.index, "item": item}

    def apply(self, root: Any) -> Any:
        array = _resolve(root, self.path)
        if not isinstance(array, MutableSequence):
            raise TypeError(f"Expected a list at path {list(self.path)}, got {type(array)}")
        if isinstance(self.item, New):
            # Appended elements arrive highest index first; pad so each lands at its index
            if self.index >= len(array):
                array.extend([None] * (self.index + 1 - len(array)))
            array[self.index] = copy.deepcopy(self.item.rhs)
        else:
            del array[self.index]
        return root


def _resolve(root: Any, path: Sequence[Any]) -> Any:
    node = root
    for key in path:
        node = node[key]
    return node


def _is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def _is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _values_equal(lhs: Any, rhs: Any) -> bool:
    # True == 1 in Python, but a bool replacing a number is a change
    if isinstance(lhs, bool) != isinstance(rhs, bool):
        return False
    if isinstance(lhs, float) and isinstance(rhs, float) and math.isnan(lhs) and math.isnan(rhs):
        return True
    return bool(lhs == rhs)


def _diff(lhs: Any, rhs: Any, path: Path, edits: list[Edit]) -> None:
    if _is_mapping(lhs) and _is_mapping(rhs):
        for key in lhs:
            if key in rhs:
                _diff(lhs[key], rhs[key], path + (key,), edits)
            else:
                edits.append(Deleted(path=path + (key,), lhs=copy.deepcopy(lhs[key])))
        for key in rhs:
            if key not in lhs:
                edits.append(New(path=path + (key,), rhs=copy.deepcopy(rhs[key])))
        return

    if _is_array(lhs) and _is_array(rhs):
        i = len(rhs) - 1
        j = len(lhs) - 1
        while i > j:
            edits.append(ArrayChange(path=path, index=i, item=New(rhs=copy.deepcopy(rhs[i]))))
            i -= 1
        while j > i:
            edits.append(ArrayChange(path=path, index=j, item=Deleted(lhs=copy.deepcopy(lhs[j]))))
            j -= 1
        while i >= 0:
            _diff(lhs[i], rhs[i], path + (i,), edits)
            i -= 1
        return

    if not _values_equal(lhs, rhs):
        edits.append(Edited(path=path, lhs=copy.deepcopy(lhs), rhs=copy.deepcopy(rhs)))


def diff(before: Any, after: Any) -> list[Edit]:
    """
    Compute the edits transforming ``before`` into ``after``.

    Pure and deterministic: identical inputs always give identical output,
    and deeply equal inputs give an empty list.
    """
    edits: list[Edit] = []
    _diff(before, after, (), edits)
    return edits


def apply_edits(before: Any, edits: Sequence[Edit]) -> Any:
    """
    Replay ``edits`` (in order) over a deep copy of ``before``.

    ``apply_edits(a, diff(a, b)) == b`` for dict/list documents.
    """
    result = copy.deepcopy(before)
    if isinstance(result, tuple):
        result = list(result)
    for edit in edits:
        result = edit.apply(result)
    return result


def edit_from_dict(data: Mapping[str, Any]) -> Edit:
    """Parse the persisted dict form of an edit."""
    kind = data.get("kind")
    path = tuple(data.get("path") or ())

    if kind == New.kind:
        return New(path=path, rhs=data.get("rhs"))
    if kind == Deleted.kind:
        return Deleted(path=path, lhs=data.get("lhs"))
    if kind == Edited.kind:
        return Edited(path=path, lhs=data.get("lhs"), rhs=data.get("rhs"))
    if kind == ArrayChange.kind:
        item = edit_from_dict(data.get("item") or {})
        if not isinstance(item, (New, Deleted)):
            raise ValueError(f"Array change item must be 'N' or 'D', got {item.kind!r}")
        return ArrayChange(path=path, index=int(data.get("index", 0)), item=item)

    raise ValueError(f"Unknown edit kind: {kind!r}")
