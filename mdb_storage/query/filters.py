"""
Translation of semantic query objects into MongoDB filters.

    {"channel": ["alza_cz", "amazon_de"]}    -> {"channel": {"$in": [...]}}
    {"purchasedAfter": datetime(...)}        -> {"purchaseDate": {"$gt": ...}}
    {"status": "Pending", "companyId": None} -> {"status": "Pending"}

Falsy values (None, "", 0, False, empty collections) are dropped: a filter
value of 0 cannot be told apart from not filtering on the field at all.
Dates under any name other than a recognised date operator are compared
for equality.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ..constants import DATE_FILTER_OPERATORS


class FilterTranslator:
    """
    Maps flat ``field -> value`` filters to native query documents.

    Args:
        date_operators: Semantic date filter name -> (target field, "$gt" | "$lt")
    """

    def __init__(self, date_operators: Mapping[str, tuple[str, str]] | None = None) -> None:
        self.date_operators = dict(
            DATE_FILTER_OPERATORS if date_operators is None else date_operators
        )

    def translate(self, filter: Mapping[str, Any] | None) -> dict[str, Any]:
        if not filter:
            return {}

        query: dict[str, Any] = {}
        for field, value in filter.items():
            if not value:
                continue

            if isinstance(value, datetime) and field in self.date_operators:
                target, operator = self.date_operators[field]
                query[target] = {operator: value}
            elif isinstance(value, (list, tuple, set, frozenset)):
                query[field] = {"$in": list(value)}
            else:
                query[field] = value

        return query

    __call__ = translate


_default_translator = FilterTranslator()


def translate_filter(filter: Mapping[str, Any] | None) -> dict[str, Any]:
    """Translate with the default date operators."""
    return _default_translator.translate(filter)
