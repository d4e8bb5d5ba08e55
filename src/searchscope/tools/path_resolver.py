"""
Search tool binary resolution for searchscope.

This module locates the external search tool through an ordered fallback
chain: the user-configured path, well-known install locations and the
system PATH, and finally a binary bundled with the host application.
"""

import os
import shutil
import sys
from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

from ..exceptions import ToolNotFound


logger = logging.getLogger(__name__)

TOOL_NAME = 'rg'

NOT_FOUND_HINT = (
    "Install ripgrep (https://github.com/BurntSushi/ripgrep) or set 'rg_path' "
    "in your configuration to a valid executable."
)


def _executable_name(name: str = TOOL_NAME) -> str:
    return f"{name}.exe" if sys.platform == 'win32' else name


def common_install_paths() -> List[str]:
    """
    Well-known install locations for the search tool, checked before PATH.

    Returns:
        Candidate paths for the current platform (may not exist)
    """
    if sys.platform == 'win32':
        candidates = []
        env_dirs = [
            ('LOCALAPPDATA', ('scoop', 'shims')),
            ('ProgramData', ('chocolatey', 'bin')),
            ('USERPROFILE', ('bin',)),
            ('USERPROFILE', ('scoop', 'shims')),
        ]
        for env_var, parts in env_dirs:
            base = os.environ.get(env_var)
            if base:
                candidates.append(str(Path(base, *parts, _executable_name())))
        return candidates

    return [
        '/usr/local/bin/rg',      # Homebrew (Intel), source installs
        '/opt/homebrew/bin/rg',   # Homebrew (Apple Silicon)
        '/usr/bin/rg',            # Linux package managers
    ]


def default_bundled_path() -> Path:
    """Location of the binary shipped alongside the package, if any."""
    return Path(__file__).resolve().parent.parent / 'bin' / _executable_name()


def is_usable(path: Union[str, Path]) -> bool:
    """
    Check that a path names an existing, executable file.

    Args:
        path: Candidate binary path

    Returns:
        True if the file exists and the current user may execute it
    """
    try:
        candidate = Path(path)
        return candidate.is_file() and os.access(candidate, os.X_OK)
    except (OSError, ValueError):
        return False


class PathResolver:
    """
    Resolve the search tool binary once and cache the result.

    Validating candidates touches the filesystem, so a session should resolve
    once and reuse the answer for every keystroke.
    """

    def __init__(self,
                 bundled_path: Optional[Union[str, Path]] = None,
                 extra_candidates: Optional[List[str]] = None):
        """
        Initialize the resolver.

        Args:
            bundled_path: Binary shipped with the host application
            extra_candidates: Install locations to check instead of the platform defaults
        """
        self.bundled_path = Path(bundled_path) if bundled_path else default_bundled_path()
        self.candidates = extra_candidates if extra_candidates is not None else common_install_paths()
        self._cache: Dict[Optional[str], str] = {}

    def resolve(self, user_path: Optional[str] = None) -> str:
        """
        Resolve the search tool binary.

        Args:
            user_path: Path configured by the user, tried first

        Returns:
            Path to a usable search tool binary

        Raises:
            ToolNotFound: If no candidate is usable
        """
        key = user_path.strip() if user_path and user_path.strip() else None
        if key in self._cache:
            return self._cache[key]

        resolved = self._resolve_uncached(key)
        self._cache[key] = resolved
        return resolved

    def clear_cache(self) -> None:
        """Forget previously resolved paths."""
        self._cache.clear()

    def _resolve_uncached(self, user_path: Optional[str]) -> str:
        if user_path:
            if is_usable(user_path):
                logger.info(f"Using user-specified search tool: {user_path}")
                return user_path
            logger.warning(f"User-specified search tool not found: {user_path}")

        system_path = self.find_system_path()
        if system_path:
            if user_path:
                logger.warning(
                    f"User-specified path not usable, falling back to search tool on system PATH: {system_path}"
                )
            return system_path

        if is_usable(self.bundled_path):
            logger.info(f"Using bundled search tool binary: {self.bundled_path}")
            return str(self.bundled_path)

        logger.error("Search tool not found in configured path, system PATH, or bundled location")
        raise ToolNotFound("Search tool (ripgrep) not found.", hint=NOT_FOUND_HINT)

    def find_system_path(self) -> Optional[str]:
        """
        Find the search tool in common install locations or on PATH.

        Returns:
            Path to the binary, or None if not found
        """
        logger.debug(f"Looking for search tool. PATH: {os.environ.get('PATH', 'Not set')}")

        for candidate in self.candidates:
            if candidate and is_usable(candidate):
                logger.debug(f"Found search tool in common location: {candidate}")
                return candidate

        # shutil.which honours PATHEXT on Windows
        found = shutil.which(TOOL_NAME)
        if found and is_usable(found):
            logger.debug(f"Found search tool on system PATH: {found}")
            return found

        return None
