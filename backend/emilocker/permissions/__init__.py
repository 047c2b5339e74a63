# Overview: Access-controlled operation definitions and role capability sets.
# Re-exports all public APIs for short imports.

from .categories import OperationCategory, ALL_CATEGORIES
from .definitions import Operation, ALL_OPERATIONS
from .roles import Role, ROLE_OPERATIONS

__all__ = [
    "OperationCategory",
    "ALL_CATEGORIES",
    "Operation",
    "ALL_OPERATIONS",
    "Role",
    "ROLE_OPERATIONS",
]
