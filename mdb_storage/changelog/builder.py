"""
Changelog entries: who changed a document, when, and what changed.

A ChangelogBuilder merges a partial update over a deep copy of the
document's previous state, diffs the two and stamps the result with the
requester's identity. It never writes anything; the store appends the entry
to the document's ``changelogs`` array.
"""

import copy
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .diff import Edit, diff, edit_from_dict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RequestContext:
    """Identity and origin of the request performing a mutation."""

    token: str
    ip: str
    endpoint: str

    @classmethod
    def coerce(cls, value: "RequestContext | Mapping[str, Any] | Any") -> "RequestContext":
        """
        Accept a RequestContext, a mapping or any object exposing
        ``token``, ``ip`` and ``endpoint`` attributes.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(token=value["token"], ip=value["ip"], endpoint=value["endpoint"])
        return cls(token=value.token, ip=value.ip, endpoint=value.endpoint)


@dataclass
class ChangelogEntry:
    """One mutation event of a document."""

    token: str
    ip: str
    endpoint: str
    timestamp: datetime
    changes: list[Edit] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the form stored in the document's ``changelogs`` array."""
        return {
            "token": self.token,
            "ip": self.ip,
            "endpoint": self.endpoint,
            "timestamp": self.timestamp,
            "changes": [change.to_dict() for change in self.changes],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChangelogEntry":
        """Create an entry from its stored form."""
        return cls(
            token=data["token"],
            ip=data["ip"],
            endpoint=data["endpoint"],
            timestamp=data["timestamp"],
            changes=[edit_from_dict(change) for change in data.get("changes") or []],
        )


class ChangelogBuilder:
    """
    Builds changelog entries from before/after document states.

    Args:
        clock: Returns the commit timestamp (UTC now by default)
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    def build(
        self,
        rc: RequestContext | Mapping[str, Any],
        before: Mapping[str, Any],
        after_partial: Mapping[str, Any],
    ) -> ChangelogEntry:
        """
        Build the entry for applying ``after_partial`` to ``before``.

        Top-level fields of ``after_partial`` replace those of ``before``;
        fields it omits are unchanged. ``build(rc, {}, {})`` yields an entry
        with no changes, which records where a document came from.
        """
        context = RequestContext.coerce(rc)
        after = copy.deepcopy(dict(before))
        after.update(copy.deepcopy(dict(after_partial)))

        return ChangelogEntry(
            token=context.token,
            ip=context.ip,
            endpoint=context.endpoint,
            timestamp=self._clock(),
            changes=diff(before, after),
        )


_default_builder = ChangelogBuilder()


def create_changelog(
    rc: RequestContext | Mapping[str, Any],
    before: Mapping[str, Any],
    after_partial: Mapping[str, Any],
) -> ChangelogEntry:
    """Build a changelog entry with the default (wall clock) builder."""
    return _default_builder.build(rc, before, after_partial)
