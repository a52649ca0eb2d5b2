"""
grove - Worktree workspace management for bare git repositories
"""

from .__version__ import __version__
from .core import Grove
from .cli.main import main

__all__ = ["Grove", "main", "__version__"]
