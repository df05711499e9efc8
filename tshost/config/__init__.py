from .config import (
    BuildConfig,
    CompilerOptions,
    LoaderOptions,
    ParsedConfig,
    find_config_file,
    load_loader_options,
    parse_query,
    read_config_file,
    resolve_build_config,
)

__all__ = [
    "BuildConfig",
    "CompilerOptions",
    "LoaderOptions",
    "ParsedConfig",
    "find_config_file",
    "load_loader_options",
    "parse_query",
    "read_config_file",
    "resolve_build_config",
]
