"""
Service layer for repotree.

Contains the logic that orchestrates domain objects and infrastructure:
- SyncService: Clone-or-update of many repositories in parallel
- RepositoryLister: Inventory of the repositories under the root

Services are the primary API for commands to use.
"""

from .sync_service import SyncService, SyncOptions, sync
from .lister import RepositoryLister, list_repos

__all__ = [
    'SyncService',
    'SyncOptions',
    'sync',
    'RepositoryLister',
    'list_repos',
]
