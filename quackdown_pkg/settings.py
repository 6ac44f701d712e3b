#!/usr/bin/env python3
"""
Settings loader for Quackdown.
Supports configuration from quackdown.yml, quackdown.yaml, or quackdown.json files.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional


class QuackdownSettings:
    """Load and manage Quackdown configuration settings."""

    DEFAULT_SETTINGS = {
        'content': 'content',
        'output': 'public',
        'max_image_width': 1200,
        'timezone_offset': 8,
        'brand_name': 'CODE A DUCK',
        'inline_css': True,
        'minify_css': False,
        'workers': None,
        'log_dir': 'logs',
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['quackdown.yml', 'quackdown.yaml', 'quackdown.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from the first configuration file found, over the defaults.

        Raises:
            ValueError: If the file is not valid YAML/JSON or not a mapping.
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            loaded_settings = self._load_config_file(config_file)
            if not isinstance(loaded_settings, dict):
                raise ValueError(f"Configuration file {config_file} must contain a mapping")
            unknown = set(loaded_settings) - set(self.DEFAULT_SETTINGS)
            if unknown:
                raise ValueError(f"Unknown settings in {config_file}: {', '.join(sorted(unknown))}")
            self.settings.update(loaded_settings)

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    return yaml.safe_load(f) or {}
                elif file_ext == '.json':
                    return json.load(f) or {}
                else:
                    raise ValueError(f"Unsupported config file format: {file_ext}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        if file_format not in ('yml', 'yaml', 'json'):
            raise ValueError(f"Unsupported config file format: {file_format}")

        filename = f'quackdown.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        with open(config_path, 'w', encoding='utf-8') as f:
            if file_format in ['yml', 'yaml']:
                f.write("# Quackdown Configuration File\n\n")
                f.write("# Site information\n")
                f.write("brand_name: CODE A DUCK\n\n")
                f.write("# Build settings\n")
                f.write("content: content\n")
                f.write("output: public\n")
                f.write("workers:  # defaults to the number of CPUs\n\n")
                f.write("# Images\n")
                f.write("max_image_width: 1200\n\n")
                f.write("# Dates are shown in this UTC offset (hours)\n")
                f.write("timezone_offset: 8\n\n")
                f.write("# Styling\n")
                f.write("inline_css: true\n")
                f.write("minify_css: false\n\n")
                f.write("# Logging\n")
                f.write("log_dir: logs\n")
            else:
                json.dump(self.DEFAULT_SETTINGS, f, indent=2)

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.
        """
        merged = self.settings.copy()
        for key, value in args_dict.items():
            if value is not None and key in merged:
                merged[key] = value
        return merged
