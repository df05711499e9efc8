"""
Utility helpers shared by the command line driver: terminal colouring and output paths.
"""

import os
from typing import Optional


class TerminalColors:
    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    CYAN = "\033[96m"
    RESET = "\033[0m"


def output_path(source_path: str, suffix: str, out_dir: Optional[str] = None) -> str:
    """Computes where the output for a source file goes, e.g. `a.ts` -> `a.js`."""
    base = source_path
    for extension in (".tsx", ".ts"):
        if base.endswith(extension):
            base = base[: -len(extension)]
            break
    if out_dir:
        base = os.path.join(out_dir, os.path.basename(base))
    return base + suffix
