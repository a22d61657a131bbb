"""
Database layer: connection lifecycle for document stores.
"""

from .connection import DatabaseConnection

__all__ = ["DatabaseConnection"]
