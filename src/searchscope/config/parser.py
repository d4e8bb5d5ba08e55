"""
YAML configuration loading for searchscope.

Configuration comes from an explicit file or from the first
``.searchscope.yaml``-style file found in the working directory, the home
directory or ``~/.config/searchscope``. Values are merged over the defaults
and validated into a SearchConfig.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List, Tuple, Union
import logging
from dataclasses import dataclass

from ..models.config import DEFAULT_RG_OPTIONS, SearchConfig, validate_config_dict


logger = logging.getLogger(__name__)

# (key, comment) pairs in template order
_TEMPLATE_COMMENTS = (
    ('rg_path', "Path to the ripgrep binary (leave empty to search PATH)"),
    ('rg_options', "Flags appended after the required flags"),
    ('add_src_paths', "Additional paths searched besides the roots"),
    ('rg_glob_excludes', "Glob patterns excluded from every search"),
    ('rg_menu_actions', "Preset flags offered before typing a query"),
    ('rg_query_params', "Rules extracting flags from the query, e.g. 'foo -t py'"),
    ('rg_query_params_show_title', "Show the expanded command as a title hint"),
    ('show_previous_results_when_no_matches', "Keep previous results when nothing matches"),
    ('roots', "Search root directories"),
    ('kill_grace_seconds', "How long cancellation waits to confirm a process exited"),
)


@dataclass
class ConfigParseResult:
    """
    Outcome of loading a configuration.

    Attributes:
        config: The validated configuration
        warnings: Non-fatal problems worth showing the user
        config_path: File the configuration came from, if any
        is_default: True when no file was found
    """
    config: SearchConfig
    warnings: List[str]
    config_path: Optional[Path]
    is_default: bool


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or is invalid."""
    pass


class ConfigParser:
    """Load, validate and template searchscope configuration files."""

    DEFAULT_CONFIG_NAMES = [
        '.searchscope.yaml',
        '.searchscope.yml',
        'searchscope.yaml',
        'searchscope.yml',
    ]

    def __init__(self, strict_mode: bool = False):
        """
        Args:
            strict_mode: Raise ConfigurationError instead of returning warnings
        """
        self.strict_mode = strict_mode
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> ConfigParseResult:
        """
        Load the configuration from ``config_path`` or the default locations.

        Raises:
            ConfigurationError: If the file is missing, unreadable or invalid,
                or if strict mode is on and there are warnings
        """
        if config_path:
            config_path = Path(config_path)
            if not config_path.exists():
                raise ConfigurationError(f"Configuration file not found: {config_path}")
            user_data = self._load_yaml_file(config_path)
        else:
            config_path, user_data = self._find_and_load_config()
        is_default = user_data is None

        data = self._get_default_config()
        data.update(user_data or {})

        try:
            config = SearchConfig.from_dict(self._validate_config_data(data))
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        warnings = config.validate_configuration() + self._get_parser_warnings(config, is_default)
        if self.strict_mode and warnings:
            raise ConfigurationError(f"Configuration warnings in strict mode: {'; '.join(warnings)}")

        self.logger.info(f"Loaded configuration from {config_path or 'defaults'}")
        return ConfigParseResult(config=config, warnings=warnings,
                                 config_path=config_path, is_default=is_default)

    def _find_and_load_config(self) -> Tuple[Optional[Path], Optional[Dict[str, Any]]]:
        """Return the first readable default config file and its data, or (None, None)."""
        directories = [Path.cwd(), Path.home(), Path.home() / '.config' / 'searchscope']

        for directory in directories:
            for name in self.DEFAULT_CONFIG_NAMES:
                candidate = directory / name
                if not candidate.is_file():
                    continue
                try:
                    return candidate, self._load_yaml_file(candidate)
                except ConfigurationError as e:
                    self.logger.warning(f"Skipping unreadable configuration {candidate}: {e}")

        self.logger.info("No configuration file found, using defaults")
        return None, None

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """
        Parse a YAML file into a mapping; empty files give ``{}``.

        Raises:
            ConfigurationError: On read errors, bad syntax or a non-mapping document
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {file_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {file_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file must contain a YAML object, got {type(data).__name__}")
        return data

    def _validate_config_data(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return validate_config_dict(config_data)
        except ValueError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}") from e

    def _get_default_config(self) -> Dict[str, Any]:
        defaults = SearchConfig(roots=[str(Path.cwd())]).to_dict()
        defaults['rg_options'] = list(DEFAULT_RG_OPTIONS)
        return defaults

    def _get_parser_warnings(self, config: SearchConfig, is_default: bool) -> List[str]:
        warnings = []
        if is_default:
            warnings.append("No configuration file found, using default settings")
        if len(config.roots) > 10:
            warnings.append(f"Large number of root directories ({len(config.roots)}) may slow down every keystroke")
        if config.rg_path and not Path(config.rg_path).exists():
            warnings.append(f"Configured rg_path does not exist and will be ignored: {config.rg_path}")
        return warnings

    def validate_config_file(self, config_path: Union[str, Path]) -> List[str]:
        """Check a file without loading it; returns error messages (empty if valid)."""
        config_path = Path(config_path)
        if not config_path.exists():
            return [f"Configuration file not found: {config_path}"]

        try:
            self._validate_config_data(self._load_yaml_file(config_path))
        except ConfigurationError as e:
            return [str(e)]
        return []

    def get_config_template(self) -> str:
        """A commented YAML template covering every option."""
        example = {
            'rg_path': '',
            'rg_options': list(DEFAULT_RG_OPTIONS),
            'add_src_paths': [],
            'rg_glob_excludes': ['**/node_modules/**', '**/.git/**'],
            'rg_menu_actions': [
                {'label': 'JS/TS', 'value': "--type-add 'jsts:*.{js,ts,tsx,jsx}' -t jsts"},
                {'label': 'JSON', 'value': '-t json'},
            ],
            'rg_query_params': [
                {'regex': r'^(.+) -t ?(\w+)$', 'param': '-t $1'},
                {'regex': r'^(.+) -g ?(\S+)$', 'param': '-g "$1"'},
            ],
            'rg_query_params_show_title': True,
            'show_previous_results_when_no_matches': False,
            'roots': ['.'],
            'kill_grace_seconds': 0.1,
        }

        lines = ["# searchscope configuration", ""]
        for key, comment in _TEMPLATE_COMMENTS:
            lines.append(f"# {comment}")
            lines.append(yaml.dump({key: example[key]}, default_flow_style=False, sort_keys=False).rstrip())
            lines.append("")
        return "\n".join(lines)


def load_config(config_path: Optional[Union[str, Path]] = None, strict_mode: bool = False) -> ConfigParseResult:
    """Load configuration with a one-off ConfigParser."""
    return ConfigParser(strict_mode=strict_mode).load_config(config_path)


def validate_config_file(config_path: Union[str, Path]) -> List[str]:
    return ConfigParser().validate_config_file(config_path)


def create_config_template(output_path: Union[str, Path]) -> None:
    """
    Write the commented template to ``output_path``, creating parent directories.

    Raises:
        ConfigurationError: If the file cannot be written
    """
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(ConfigParser().get_config_template(), encoding='utf-8')
    except OSError as e:
        raise ConfigurationError(f"Cannot create template file {output_path}: {e}") from e
