import importlib
import logging
from types import ModuleType
from typing import Optional

from ..exceptions import ConfigurationError, ErrorCode
from .protocol import (
    DiagnosticMessageChain,
    EmitOutput,
    LanguageService,
    LanguageServiceHost,
    OutputFile,
    Program,
    ServiceDiagnostic,
)

logger = logging.getLogger(__name__)

DEFAULT_COMPILER = "tshost.service.lite"
REQUIRED_ATTRIBUTES = ("create_language_service", "get_default_lib_file_path")


def load_compiler(name: Optional[str] = None) -> ModuleType:
    """
    Imports a compiler module by dotted name. Custom compilers only need to expose
    `create_language_service(host)` and `get_default_lib_file_path(options)`.
    """
    module_name = name or DEFAULT_COMPILER
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(ErrorCode.COMPILER_NOT_FOUND, name=module_name, reason=str(e)) from e

    missing = [attr for attr in REQUIRED_ATTRIBUTES if not callable(getattr(module, attr, None))]
    if missing:
        raise ConfigurationError(ErrorCode.COMPILER_NOT_FOUND, name=module_name, reason=f"missing {', '.join(missing)}")

    logger.debug("Using compiler module %s", module_name)
    return module


__all__ = [
    "DEFAULT_COMPILER",
    "DiagnosticMessageChain",
    "EmitOutput",
    "LanguageService",
    "LanguageServiceHost",
    "OutputFile",
    "Program",
    "ServiceDiagnostic",
    "load_compiler",
]
