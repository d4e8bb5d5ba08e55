"""
Configuration data models for searchscope.

This module defines the configuration structure for the search orchestrator,
including the search tool location, the flags passed to it, exclude globs,
query parameter rules, and the no-results display policy.
"""

import re
from typing import Dict, List, Optional, Any
from pathlib import Path
from pydantic import BaseModel, Field, field_validator, model_validator


DEFAULT_RG_OPTIONS = ['--smart-case', '--sortr path']


class MenuAction(BaseModel):
    """
    A preset set of tool flags the user can pick before typing a query.

    Attributes:
        label: Optional human readable label shown instead of the raw value
        value: Flags appended to the command when the action is selected
    """

    label: Optional[str] = Field(None, description="Display label")
    value: str = Field(..., min_length=1, description="Tool flags for this action")

    @property
    def display_label(self) -> str:
        return self.label or self.value


class QueryParamRule(BaseModel):
    """
    Rule that peels extra tool flags off the end of a free-text query.

    The regex must capture the residual query in group 1 and the flag
    arguments in groups 2..N, which are substituted into ``param`` as
    ``$1``..``$N``. Either field may be missing, in which case the rule
    is skipped at extraction time.

    Example:
        QueryParamRule(regex=r"^(.+) -t ?(\\w+)$", param="-t $1")
    """

    param: Optional[str] = Field(None, description="Flag template using $1..$N placeholders")
    regex: Optional[str] = Field(None, description="Pattern matched against the raw query")

    def is_complete(self) -> bool:
        """Check if both the template and the pattern are present."""
        return bool(self.param) and bool(self.regex)

    def compile(self) -> Optional[re.Pattern]:
        """Compile the pattern, returning None if it is missing or invalid."""
        if not self.regex:
            return None
        try:
            return re.compile(self.regex)
        except re.error:
            return None


class SearchConfig(BaseModel):
    """
    Main configuration for a search session.

    Attributes:
        rg_path: User-configured path to the search tool binary
        rg_options: User flags appended after the required flags
        add_src_paths: Additional paths searched besides the roots
        rg_glob_excludes: Glob patterns excluded from every search
        rg_menu_actions: Preset flag groups offered before the query
        rg_query_params: Rules extracting flags from the query text
        rg_query_params_show_title: Whether to show the expanded command as a title hint
        show_previous_results_when_no_matches: Keep stale results visible when nothing matched
        roots: Search roots (usually the workspace folders)
        kill_grace_seconds: How long a cancellation sweep waits to confirm process death
    """

    rg_path: Optional[str] = Field(None, description="Path to the search tool binary")
    rg_options: List[str] = Field(default_factory=lambda: list(DEFAULT_RG_OPTIONS),
                                  description="User flags for the search tool")
    add_src_paths: List[str] = Field(default_factory=list, description="Additional search paths")
    rg_glob_excludes: List[str] = Field(default_factory=list, description="Excluded glob patterns")
    rg_menu_actions: List[MenuAction] = Field(default_factory=list, description="Preset flag menu")
    rg_query_params: List[QueryParamRule] = Field(default_factory=list,
                                                  description="Query flag extraction rules")
    rg_query_params_show_title: bool = Field(True, description="Show expanded command hint")
    show_previous_results_when_no_matches: bool = Field(
        False, description="Retain previous results when a search finds nothing"
    )
    roots: List[str] = Field(default_factory=list, description="Search root directories")
    kill_grace_seconds: float = Field(0.1, ge=0, le=10, description="Cancellation grace period")

    @field_validator('rg_path')
    @classmethod
    def validate_rg_path(cls, v: Optional[str]) -> Optional[str]:
        """Normalize blank tool paths to None."""
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator('rg_options', 'add_src_paths', 'rg_glob_excludes')
    @classmethod
    def validate_string_lists(cls, v: List[str]) -> List[str]:
        """Drop blank entries and surrounding whitespace."""
        return [item.strip() for item in v if item and item.strip()]

    @field_validator('roots')
    @classmethod
    def validate_roots(cls, v: List[str]) -> List[str]:
        """Validate and normalize root directory paths."""
        normalized_roots = []
        for root in v:
            if not root or not root.strip():
                continue

            root_path = Path(root.strip()).expanduser()
            normalized_roots.append(str(root_path))

        return normalized_roots

    @model_validator(mode='after')
    def validate_unique_paths(self):
        """Remove duplicate additional paths and excludes while keeping order."""
        self.add_src_paths = list(dict.fromkeys(self.add_src_paths))
        self.rg_glob_excludes = list(dict.fromkeys(self.rg_glob_excludes))
        return self

    def validate_configuration(self) -> List[str]:
        """
        Validate the configuration and return a list of warnings.

        Returns:
            List of warning messages (empty if everything looks fine)
        """
        warnings = []

        if not self.roots and not self.add_src_paths:
            warnings.append("No search roots configured; the tool will search its working directory")

        for root in self.roots:
            if not Path(root).exists():
                warnings.append(f"Search root does not exist: {root}")

        for index, rule in enumerate(self.rg_query_params):
            if not rule.is_complete():
                warnings.append(f"Query param rule #{index + 1} is missing 'param' or 'regex' and will be ignored")
            elif rule.compile() is None:
                warnings.append(f"Query param rule #{index + 1} has an invalid regex: {rule.regex}")

        if '--json' in self.rg_options:
            warnings.append("'--json' is always passed; remove it from rg_options")

        return warnings

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary representation."""
        return self.model_dump()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchConfig':
        """Create configuration from dictionary representation."""
        return cls.model_validate(data)

    def __str__(self) -> str:
        parts = [f"Roots: {len(self.roots)} directories"]
        parts.append(f"Options: {' '.join(self.rg_options) or 'none'}")
        parts.append(f"Excludes: {len(self.rg_glob_excludes)}")
        parts.append(f"Query rules: {len(self.rg_query_params)}")
        return " | ".join(parts)


def validate_config_dict(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a configuration dictionary using Pydantic.

    Args:
        config_data: Dictionary containing configuration data

    Returns:
        Validated and normalized configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    unknown_keys = set(config_data) - set(SearchConfig.model_fields)
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown_keys))}")

    try:
        return SearchConfig.model_validate(config_data).model_dump()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}") from e
