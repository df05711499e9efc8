"""
The bundled compiler service. It understands a practical subset of TypeScript:
enough to strip types, rewrite modules, emit declarations and report the most
common problems, without depending on a JavaScript runtime.
"""

import os

from ...config import CompilerOptions
from ..protocol import LanguageServiceHost
from .language_service import LiteLanguageService, LiteProgram
from .parser import parse_source_file

LIB_DIRECTORY = os.path.join(os.path.dirname(os.path.abspath(__file__)), "lib")


def create_language_service(host: LanguageServiceHost) -> LiteLanguageService:
    return LiteLanguageService(host)


def get_default_lib_file_path(options: CompilerOptions) -> str:
    return os.path.join(LIB_DIRECTORY, "lib.d.ts")


__all__ = [
    "LiteLanguageService",
    "LiteProgram",
    "create_language_service",
    "get_default_lib_file_path",
    "parse_source_file",
]
