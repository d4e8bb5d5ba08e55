"""
Command construction for the external search tool.

The command is assembled as an ordered list of tokens and joined into one
shell string. Required flags come before user flags so user flags win under
the tool's last-flag-wins rules.
"""

import re
from typing import List, Optional, Sequence

from ..models.search_request import SearchMode, SearchRequest
from .file_list import FILE_SEARCH_FLAGS


REQUIRED_FLAGS = (
    '--line-number',
    '--column',
    '--no-heading',
    '--with-filename',
    '--color=never',
    '--json',
)

_QUOTED_SUBSTRING = re.compile(r'"[^"]*"|\'[^\']*\'')


def is_quoted(value: str) -> bool:
    """Check if a value is wrapped in a matching pair of quotes."""
    return len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'")


def quote_search_term(term: str) -> str:
    """
    Quote a search term for the shell command.

    Terms that already contain a quoted substring are passed through
    unmodified, including partially quoted input. Terms containing
    whitespace are wrapped in double quotes. Everything else is left bare.

    Args:
        term: Search term after query flag extraction

    Returns:
        The term as it should appear in the command
    """
    if not term:
        return '""'
    if _QUOTED_SUBSTRING.search(term):
        return term
    if any(ch.isspace() for ch in term):
        return f'"{term}"'
    return term


def ensure_quoted_path(path: str) -> str:
    """Quote a path containing whitespace unless it is already quoted."""
    if is_quoted(path) or not any(ch.isspace() for ch in path):
        return path
    return f'"{path}"'


def exclude_glob_flag(pattern: str) -> str:
    return f'--glob "!{pattern}"'


class CommandBuilder:
    """
    Build search tool invocations from search requests.

    Token order:
        tool path, search term, required flags, user flags, menu flags,
        roots (or the current file), additional paths, extracted flags,
        negated exclude globs.

    File search requests list files instead: they carry no search term,
    use the file search flags and always search the roots.
    """

    def __init__(self, fixed_flags: Sequence[str] = REQUIRED_FLAGS,
                 file_flags: Sequence[str] = FILE_SEARCH_FLAGS):
        """
        Initialize the builder.

        Args:
            fixed_flags: Flags every invocation needs to produce parseable output
            file_flags: Flags used instead of fixed_flags for file search
        """
        self.fixed_flags = list(fixed_flags)
        self.file_flags = list(file_flags)

    def build_args(self,
                   request: SearchRequest,
                   tool_path: str,
                   user_flags: Sequence[str] = (),
                   roots: Sequence[str] = ()) -> List[str]:
        """
        Build the ordered token list for one invocation.

        Args:
            request: The search request
            tool_path: Resolved search tool binary
            user_flags: User-configured tool flags
            roots: Search root directories

        Returns:
            List of shell tokens, already quoted where needed
        """
        files_mode = request.mode == SearchMode.FILES

        search_paths: List[str]
        if request.current_file and not files_mode:
            search_paths = [request.current_file]
        else:
            search_paths = list(roots)

        tokens = [f'"{tool_path}"']
        if files_mode:
            tokens.extend(self.file_flags)
        else:
            tokens.append(quote_search_term(request.query))
            tokens.extend(self.fixed_flags)
        tokens.extend(user_flags)
        tokens.extend(request.menu_flags)
        tokens.extend(ensure_quoted_path(path) for path in search_paths)
        tokens.extend(ensure_quoted_path(path) for path in request.additional_paths)
        tokens.extend(request.extra_flags)
        tokens.extend(exclude_glob_flag(pattern) for pattern in request.exclude_globs)
        return tokens

    def build(self,
              request: SearchRequest,
              tool_path: str,
              user_flags: Sequence[str] = (),
              roots: Optional[Sequence[str]] = None) -> str:
        """Build the invocation as a single shell command string."""
        return ' '.join(self.build_args(request, tool_path, user_flags, roots or ()))
