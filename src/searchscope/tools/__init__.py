"""
Search tool integration for searchscope.

This module contains the components that talk to the external search tool:
binary resolution, query flag extraction, command construction, process
supervision, and output parsing for content and file name searches.
"""

from .command_builder import CommandBuilder, REQUIRED_FLAGS, ensure_quoted_path, quote_search_term
from .file_list import FILE_SEARCH_FLAGS, FileListParser, FileQuery, parse_file_query, strip_files_flag
from .path_resolver import PathResolver
from .process_supervisor import ManagedProcess, ProcessSupervisor
from .query_flags import QueryFlagExtraction, describe_query_flags, extract_query_flags
from .stream_parser import StreamParser

__all__ = [
    'CommandBuilder',
    'REQUIRED_FLAGS',
    'ensure_quoted_path',
    'quote_search_term',
    'FILE_SEARCH_FLAGS',
    'FileListParser',
    'FileQuery',
    'parse_file_query',
    'strip_files_flag',
    'PathResolver',
    'ManagedProcess',
    'ProcessSupervisor',
    'QueryFlagExtraction',
    'describe_query_flags',
    'extract_query_flags',
    'StreamParser',
]
