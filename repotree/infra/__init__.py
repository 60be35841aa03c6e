"""
Infrastructure layer for repotree.

Contains abstractions for external systems:
- GitClient: Git command execution (clone, pull, status)
- GitBackend: The protocol services depend on, so it can be mocked for testing
"""

from .git_client import GitBackend, GitClient, GitResult

__all__ = [
    'GitBackend',
    'GitClient',
    'GitResult',
]
