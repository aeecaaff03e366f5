"""Tools for the repair agent."""

from .storage_tool import BoundedStore
from .claude_tool import ClaudeModelCall

__all__ = [
    "BoundedStore",
    "ClaudeModelCall",
]
