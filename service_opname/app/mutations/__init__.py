"""
Mutations package: serialized, version-bumping writes to the store.
"""

from .coordinator import MutationCoordinator

__all__ = ["MutationCoordinator"]
