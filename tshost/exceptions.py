"""
Custom exception types for the incremental compilation host.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):

    # --- Emission Errors ---
    FILE_NOT_FOUND = "{path}: File not found"

    # --- Configuration File Errors ---
    CONFIG_FILE_UNREADABLE = "Cannot read file '{path}': {reason}."
    CONFIG_FILE_INVALID_JSON = "Failed to parse file '{path}': {reason}."
    CONFIG_FILE_NOT_AN_OBJECT = "The root value of '{path}' must be an object."
    CONFIG_FILES_NOT_A_LIST = "Compiler option 'files' requires a value of type list of strings."

    # --- Compiler Option Errors ---
    UNKNOWN_COMPILER_OPTION = "Unknown compiler option '{name}'."
    INVALID_COMPILER_OPTION = "Compiler option '{name}' has an invalid value: {reason}."

    # --- Loader Option Errors ---
    INVALID_QUERY = "Loader query '{query}' could not be parsed: {reason}."
    INVALID_LOADER_OPTION = "Loader option '{name}' has an invalid value: {reason}."
    COMPILER_NOT_FOUND = "Could not load compiler module '{name}': {reason}."


class TsHostError(Exception):
    def __init__(self, code: ErrorCode, file_path: Optional[str] = None, **kwargs):
        self.code = code
        self.file_path = file_path
        self.details = kwargs

        # The format string is populated with any extra data it needs from kwargs.
        core_message = code.value.format(**kwargs)

        if file_path:
            self.message = f"Error in '{file_path}': {core_message}"
        else:
            self.message = core_message

        super().__init__(self.message)


class ConfigurationError(TsHostError):
    """Malformed or missing project configuration, loader options or compiler module."""


class EmissionError(TsHostError):
    """The compiler declined to emit output for the active build target."""

    def __init__(self, path: str):
        super().__init__(ErrorCode.FILE_NOT_FOUND, path=path)
        self.path = path
