"""
searchscope - Core Package

An incremental search orchestrator that drives an external ripgrep-compatible
tool as the user types, streaming its JSON output into a live result set.
"""

from .engine.session import SearchSession
from .exceptions import SearchScopeError, ToolNotFound

__version__ = "0.1.0"
__author__ = "searchscope Team"

__all__ = ['SearchSession', 'SearchScopeError', 'ToolNotFound']
