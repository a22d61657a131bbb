"""
Index management: declared index specifications and collection bootstrap.
"""

from .bootstrap import CollectionBootstrapper, IndexPlan, plan_index_changes
from .helpers import IndexSpecification, is_id_index, key_identity, normalize_keys

__all__ = [
    "CollectionBootstrapper",
    "IndexPlan",
    "plan_index_changes",
    "IndexSpecification",
    "is_id_index",
    "key_identity",
    "normalize_keys",
]
