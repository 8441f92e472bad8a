#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Loading build options from JSON, YAML, TOML and INI files.
"""

from __future__ import annotations

import configparser
import json
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger

from ..core.errors import ConfigurationError, ErrorContext


class OptionsFile:
    """
    Reads raw build options from a file.

    The result is a plain mapping of option name to raw value; validation of the
    values themselves is left to the configuration resolver. Options may sit at
    the top level or under a ``build`` section/table/key.
    """

    _SUPPORTED_EXTENSIONS = {
        ".json": "json",
        ".yaml": "yaml",
        ".yml": "yaml",
        ".toml": "toml",
        ".ini": "ini",
        ".conf": "ini",
    }

    DEFAULT_BASE_NAMES = ("lz4build", ".lz4build")

    @classmethod
    def load(cls, file_path: Union[Path, str]) -> Dict[str, Any]:
        """
        Load raw options from a file.

        Raises:
            ConfigurationError: If the file is missing, unreadable, of an
                unsupported format or not shaped like an options mapping.
        """
        config_path = Path(file_path)

        if not config_path.is_file():
            raise ConfigurationError(
                f"Configuration file not found: {config_path}",
                config_file=config_path,
                context=ErrorContext(working_directory=config_path.parent),
            )

        suffix = config_path.suffix.lower()
        if suffix not in cls._SUPPORTED_EXTENSIONS:
            supported = ", ".join(cls._SUPPORTED_EXTENSIONS)
            raise ConfigurationError(
                f"Unsupported configuration file format: {suffix}. Supported formats: {supported}",
                config_file=config_path,
            )

        try:
            content = config_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigurationError(
                f"Failed to read configuration file: {e}",
                config_file=config_path,
                cause=e,
            ) from e

        format_type = cls._SUPPORTED_EXTENSIONS[suffix]
        logger.debug(f"Loading {format_type.upper()} options from {config_path}")

        match format_type:
            case "json":
                return cls.load_from_json(content, config_path)
            case "yaml":
                return cls.load_from_yaml(content, config_path)
            case "toml":
                return cls.load_from_toml(content, config_path)
            case _:
                return cls.load_from_ini(content, config_path)

    @classmethod
    def load_from_json(cls, json_str: str, source_file: Optional[Path] = None) -> Dict[str, Any]:
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                f"Invalid JSON configuration: {e}",
                config_file=source_file,
                context=ErrorContext(additional_info={"line": e.lineno, "column": e.colno}),
                cause=e,
            ) from e
        return cls._extract(data, source_file)

    @classmethod
    def load_from_yaml(cls, yaml_str: str, source_file: Optional[Path] = None) -> Dict[str, Any]:
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            details: Dict[str, Any] = {}
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                details.update({"line": mark.line + 1, "column": mark.column + 1})
            raise ConfigurationError(
                f"Invalid YAML configuration: {e}",
                config_file=source_file,
                context=ErrorContext(additional_info=details),
                cause=e,
            ) from e
        return cls._extract({} if data is None else data, source_file)

    @classmethod
    def load_from_toml(cls, toml_str: str, source_file: Optional[Path] = None) -> Dict[str, Any]:
        try:
            data = tomllib.loads(toml_str)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(
                f"Invalid TOML configuration: {e}", config_file=source_file, cause=e
            ) from e
        return cls._extract(data, source_file)

    @classmethod
    def load_from_ini(cls, ini_str: str, source_file: Optional[Path] = None) -> Dict[str, Any]:
        """INI options live in a ``[build]`` section; values stay strings."""
        parser = configparser.ConfigParser()
        try:
            parser.read_string(ini_str)
        except configparser.Error as e:
            raise ConfigurationError(
                f"Invalid INI configuration: {e}", config_file=source_file, cause=e
            ) from e

        if "build" not in parser:
            raise ConfigurationError(
                "INI configuration must contain a [build] section",
                config_file=source_file,
            )
        return dict(parser["build"])

    @classmethod
    def _extract(cls, data: Any, source_file: Optional[Path]) -> Dict[str, Any]:
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration must be a mapping of option names to values",
                config_file=source_file,
            )
        if "build" in data:
            data = data["build"]
            if not isinstance(data, dict):
                raise ConfigurationError(
                    "The 'build' section must be a mapping",
                    config_file=source_file,
                )
        return dict(data)

    @classmethod
    def default_files(cls, directory: Path) -> tuple[Path, ...]:
        """Candidate option files in ``directory``, in order of preference."""
        found = []
        for base_name in cls.DEFAULT_BASE_NAMES:
            for ext in cls._SUPPORTED_EXTENSIONS:
                candidate = directory / f"{base_name}{ext}"
                if candidate.is_file():
                    found.append(candidate)
        return tuple(found)

    @classmethod
    def discover(cls, start_directory: Union[Path, str]) -> Optional[Path]:
        """Find the nearest options file in ``start_directory`` or its parents."""
        search_dir = Path(start_directory).resolve()
        for directory in [search_dir, *search_dir.parents]:
            candidates = cls.default_files(directory)
            if candidates:
                logger.info(f"Auto-discovered options file: {candidates[0]}")
                return candidates[0]

        logger.debug("No options file auto-discovered")
        return None
