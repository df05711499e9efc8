"""
Configuration layer for the compilation host.

Two kinds of settings are resolved here once per session:
- loader options, parsed from the build tool's query string (which compiler
  module to use, where the project configuration lives, extra compiler options);
- compiler options, merged with a fixed precedence:
  built-in defaults < project `tsconfig.json` < caller overrides < forced fields.

Problems are collected as `ConfigurationError`s instead of being raised, so the
caller can report them and carry on with defaulted values.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..exceptions import ConfigurationError, ErrorCode

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "tsconfig.json"

TARGETS = ("es3", "es5", "es6", "es2015", "es2016", "es2017", "es2018", "es2019", "es2020", "es2021", "es2022", "esnext")
MODULE_KINDS = ("none", "commonjs", "es6", "es2015", "es2020", "esnext")
NEW_LINE_KINDS = ("lf", "crlf")


class CompilerOptions(BaseModel):
    """The compiler settings a session is created with. Field aliases follow tsconfig.json."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    target: str = "es5"
    module: str = "commonjs"
    source_map: bool = Field(False, alias="sourceMap")
    declaration: bool = False
    no_lib: bool = Field(False, alias="noLib")
    new_line: Optional[str] = Field(None, alias="newLine")

    @field_validator("target")
    @classmethod
    def _check_target(cls, value: str) -> str:
        return _check_choice(value, TARGETS)

    @field_validator("module")
    @classmethod
    def _check_module(cls, value: str) -> str:
        return _check_choice(value, MODULE_KINDS)

    @field_validator("new_line")
    @classmethod
    def _check_new_line(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_choice(value, NEW_LINE_KINDS)

    @property
    def is_es5_or_lower(self) -> bool:
        return self.target in ("es3", "es5")


def _check_choice(value: str, choices: Tuple[str, ...]) -> str:
    lowered = value.lower()
    if lowered not in choices:
        raise ValueError(f"expected one of {', '.join(choices)}")
    return lowered


# Maps both the tsconfig spelling and the Python field name to the tsconfig spelling.
OPTION_NAMES: Dict[str, str] = {}
for _name, _field in CompilerOptions.model_fields.items():
    OPTION_NAMES[_name] = _field.alias or _name
    OPTION_NAMES[_field.alias or _name] = _field.alias or _name


class LoaderOptions(BaseModel):
    """Options passed to the host through the build tool's query string."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    compiler: Optional[str] = None
    config_file: Optional[str] = Field(None, alias="configFile")
    compiler_options: Dict[str, Any] = Field(default_factory=dict, alias="compilerOptions")


@dataclass
class ParsedConfig:
    """The resolved project configuration of a session."""

    options: CompilerOptions = field(default_factory=CompilerOptions)
    file_names: List[str] = field(default_factory=list)
    config_file: Optional[str] = None
    errors: List[ConfigurationError] = field(default_factory=list)


@dataclass
class BuildConfig:
    """Everything the build tool tells us when the first file of a configuration arrives."""

    context: str
    resource_path: str
    query: str = ""
    source_map: bool = False
    emit_error: Optional[Callable[[str], None]] = None


# --- Query Parsing ---


def _parse_query_value(value: str) -> Any:
    if value == "true":
        return True
    if value == "false":
        return False
    return value


def parse_query(query: str) -> Dict[str, Any]:
    """
    Parses a build-tool query string into a dictionary.
    Supports the JSON form (`?{"configFile": "..."}`) and the flag form (`?a=1&b&-c`).
    """
    if not query:
        return {}

    body = query[1:] if query.startswith("?") else query
    if body.startswith("{"):
        try:
            result = json.loads(body)
        except json.JSONDecodeError as e:
            raise ConfigurationError(ErrorCode.INVALID_QUERY, query=query, reason=e.msg) from e
        if not isinstance(result, dict):
            raise ConfigurationError(ErrorCode.INVALID_QUERY, query=query, reason="expected an object")
        return result

    result: Dict[str, Any] = {}
    for part in body.replace(",", "&").split("&"):
        if not part:
            continue
        if "=" in part:
            name, value = part.split("=", 1)
            name, parsed = unquote(name), _parse_query_value(unquote(value))
        elif part.startswith("-"):
            name, parsed = unquote(part[1:]), False
        elif part.startswith("+"):
            name, parsed = unquote(part[1:]), True
        else:
            name, parsed = unquote(part), True

        if name.endswith("[]"):
            result.setdefault(name[:-2], []).append(parsed)
        else:
            result[name] = parsed
    return result


def load_loader_options(query: str) -> Tuple[LoaderOptions, List[ConfigurationError]]:
    try:
        raw = parse_query(query)
    except ConfigurationError as e:
        return LoaderOptions(), [e]

    try:
        return LoaderOptions.model_validate(raw), []
    except ValidationError as e:
        first = e.errors()[0]
        name = ".".join(str(part) for part in first["loc"])
        error = ConfigurationError(ErrorCode.INVALID_LOADER_OPTION, name=name, reason=first["msg"])
        return LoaderOptions(), [error]


# --- Config File Discovery & Reading ---


def find_config_file(path: str) -> Optional[str]:
    """Walks upward from `path` and returns the first tsconfig.json found."""
    directory = path if os.path.isdir(path) else os.path.dirname(path)

    while True:
        candidate = os.path.join(directory, CONFIG_FILE_NAME)
        if os.path.isfile(candidate):
            return candidate

        parent = os.path.dirname(directory)
        if parent == directory:
            return None
        directory = parent


def load_config_file(config_file: str) -> Dict[str, Any]:
    """Loads a configuration file, raising `ConfigurationError` if it is unusable."""
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            content = f.read()
    except OSError as e:
        raise ConfigurationError(ErrorCode.CONFIG_FILE_UNREADABLE, path=config_file, reason=e.strerror or str(e)) from e

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigurationError(ErrorCode.CONFIG_FILE_INVALID_JSON, path=config_file, reason=e.msg) from e

    if not isinstance(data, dict):
        raise ConfigurationError(ErrorCode.CONFIG_FILE_NOT_AN_OBJECT, path=config_file)
    return data


def _canonical_options(raw: Dict[str, Any], errors: List[ConfigurationError], source: Optional[str]) -> Dict[str, Any]:
    """Renames known options to their tsconfig spelling and reports unknown ones."""
    canonical = {}
    for name, value in raw.items():
        if name not in OPTION_NAMES:
            errors.append(ConfigurationError(ErrorCode.UNKNOWN_COMPILER_OPTION, file_path=source, name=name))
            continue
        canonical[OPTION_NAMES[name]] = value
    return canonical


def build_compiler_options(layers: Iterable[Dict[str, Any]], errors: List[ConfigurationError]) -> CompilerOptions:
    """
    Merges already-canonical option layers, later layers winning, and validates the result.
    Options that fail validation are reported and fall back to their defaults.
    """
    merged: Dict[str, Any] = {}
    for layer in layers:
        merged.update(layer)

    try:
        return CompilerOptions.model_validate(merged)
    except ValidationError as e:
        validation_errors = e.errors()

    invalid: Dict[str, str] = {}
    for error in validation_errors:
        name = OPTION_NAMES.get(str(error["loc"][0]), str(error["loc"][0]))
        invalid.setdefault(name, error["msg"])

    for name, reason in invalid.items():
        errors.append(ConfigurationError(ErrorCode.INVALID_COMPILER_OPTION, name=name, reason=reason))
    return CompilerOptions.model_validate({k: v for k, v in merged.items() if k not in invalid})


def read_config_file(
    config_file: Optional[str],
    source_map: bool = False,
    overrides: Optional[Dict[str, Any]] = None,
) -> ParsedConfig:
    """
    Reads the configuration into a `ParsedConfig`.
    The source map setting is always forced from the active request.
    """
    errors: List[ConfigurationError] = []
    file_names: List[str] = []
    file_options: Dict[str, Any] = {}

    if config_file:
        try:
            tsconfig = load_config_file(config_file)
        except ConfigurationError as e:
            logger.warning("%s", e)
            errors.append(e)
            tsconfig = {}

        config_dir = os.path.dirname(config_file)

        # Resolve and include `tsconfig.json` files.
        files = tsconfig.get("files", [])
        if isinstance(files, list) and all(isinstance(f, str) for f in files):
            file_names = [os.path.normpath(os.path.join(config_dir, f)) for f in files]
        else:
            errors.append(ConfigurationError(ErrorCode.CONFIG_FILES_NOT_A_LIST, file_path=config_file))

        compiler_options = tsconfig.get("compilerOptions", {})
        if isinstance(compiler_options, dict):
            file_options = _canonical_options(compiler_options, errors, config_file)
        else:
            errors.append(
                ConfigurationError(ErrorCode.INVALID_COMPILER_OPTION, file_path=config_file, name="compilerOptions", reason="expected an object")
            )

    override_options = _canonical_options(overrides or {}, errors, None)
    forced = {"sourceMap": source_map}

    options = build_compiler_options([file_options, override_options, forced], errors)
    return ParsedConfig(options=options, file_names=file_names, config_file=config_file, errors=errors)


def resolve_build_config(build_config: BuildConfig) -> Tuple[LoaderOptions, ParsedConfig]:
    """Resolves the loader options and project configuration for a new session."""
    loader_options, errors = load_loader_options(build_config.query)

    # Allow `configFile` option to override `tsconfig.json` lookup.
    if loader_options.config_file:
        config_file = os.path.normpath(os.path.join(build_config.context, loader_options.config_file))
    else:
        config_file = find_config_file(os.path.dirname(build_config.resource_path))

    parsed = read_config_file(config_file, build_config.source_map, loader_options.compiler_options)
    parsed.errors[:0] = errors
    return loader_options, parsed
