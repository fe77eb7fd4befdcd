#!/usr/bin/env python3
"""
Settings for the Tinsel build tool.
Supports configuration from tinsel.yml, tinsel.yaml, or tinsel.json files.
"""

import os
import json
import yaml
from dataclasses import dataclass, field
from typing import Dict, Any, FrozenSet, Optional, Tuple

from .interpreter import PythonEvaluator

DEFAULT_TRANSFORMED_EXTENSIONS = ('.txt', '.html', '.css', '.js', '.json', '.md')


@dataclass(frozen=True)
class Config:
    """Read-only configuration of a build."""

    input_path: str
    output_path: str
    watch: bool = False
    debug: bool = False
    minify: bool = False
    open_tag: str = '<%'
    close_tag: str = '%>'
    transformed_extensions: FrozenSet[str] = frozenset(DEFAULT_TRANSFORMED_EXTENSIONS)
    transformers: Tuple[Any, ...] = ()
    context_extenders: Tuple[Any, ...] = ()
    ignore_prefix: str = '_'
    meta_filename: str = 'meta.json'
    max_include_depth: int = 64
    evaluator: Any = field(default_factory=PythonEvaluator)


def normalize_extension(extension: str) -> str:
    extension = extension.strip().lower()
    return extension if extension.startswith('.') else f'.{extension}'


class TinselSettings:
    """Load and manage Tinsel configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'input': None,
        'output': None,
        'watch': False,
        'debug': False,
        'minify': False,
        'open_tag': '<%',
        'close_tag': '%>',
        'extensions': [],
        'ignore_prefix': '_',
        'meta_file': 'meta.json',
        'max_include_depth': 64,
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['tinsel.yml', 'tinsel.yaml', 'tinsel.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = dict(self.DEFAULT_SETTINGS)
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from the configuration file if it exists.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            loaded_settings = self._load_config_file(config_file)
            if loaded_settings:
                # Merge with defaults, giving preference to loaded settings
                self.settings.update(loaded_settings)

        return dict(self.settings)

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    loaded = yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    loaded = json.load(f) or {}
                else:
                    raise ValueError(f"Unsupported config file format: {file_ext}")
        except PermissionError:
            raise PermissionError(f"Permission denied reading configuration file: {config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")

        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        return loaded

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        filename = f'tinsel.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# Tinsel Configuration File\n\n")
                    f.write("# Build settings\n")
                    f.write("input: site\n")
                    f.write("output: public\n\n")
                    f.write("# Template settings\n")
                    f.write("open_tag: '<%'\n")
                    f.write("close_tag: '%>'\n")
                    f.write("extensions: []  # extra extensions to run templates in, e.g. .xml\n")
                    f.write("ignore_prefix: _\n")
                    f.write("meta_file: meta.json\n")
                    f.write("max_include_depth: 64\n\n")
                    f.write("# Development settings\n")
                    f.write("minify: false\n")
                    f.write("debug: false\n")
                    f.write("watch: false\n")
                elif file_format == 'json':
                    sample_config = dict(self.DEFAULT_SETTINGS, input='site', output='public')
                    json.dump(sample_config, f, indent=2)
                else:
                    raise ValueError(f"Unsupported config file format: {file_format}")
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = dict(self.settings)

        for key, value in args_dict.items():
            if value is None:
                continue
            if key == 'extensions':
                # Extensions from both sources add to the defaults
                merged[key] = list(merged.get(key) or []) + list(value)
            else:
                merged[key] = value

        return merged
