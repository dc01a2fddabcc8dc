"""
Filesystem lookup for the llama.cpp binary and model weight files.

The candidate lists come from AIConfig; this module only walks them in order
and reports the first usable entry. Nothing is cached.
"""

import os
import shutil
from collections.abc import Iterable
from pathlib import Path

from ..logging_config import debug_log

# Suffixes Windows will execute without an executable bit
WINDOWS_EXECUTABLE_SUFFIXES = ('.exe', '.bat', '.cmd', '.com')


class ExecutableLocator:
    """
    Finds the first usable path among ordered candidates.

    Example:
        locator = ExecutableLocator()
        exe = locator.locate_executable(config.engine_candidates)
        model = locator.locate_model(config.gguf_candidates, suffix=".gguf")
    """

    def __init__(self, base_dir: Path | None = None):
        """
        Args:
            base_dir: Directory relative candidates are resolved against
                      (defaults to the current working directory).
        """
        self.base_dir = Path(base_dir) if base_dir is not None else None

    def _resolve(self, candidate) -> Path:
        path = Path(candidate).expanduser()
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path

    @staticmethod
    def is_executable(path: Path) -> bool:
        """True if path is a file marked executable or carrying a Windows executable suffix."""
        if not path.is_file():
            return False
        if os.access(path, os.X_OK):
            return True
        return path.suffix.lower() in WINDOWS_EXECUTABLE_SUFFIXES

    def locate_executable(self, candidates: Iterable) -> Path | None:
        """
        Return the first candidate that exists and can be executed.

        Bare command names (no directory part) that are not present relative
        to base_dir are also looked up on PATH.

        Args:
            candidates: Ordered candidate paths

        Returns:
            Absolute path of the first match, or None
        """
        for candidate in candidates:
            path = self._resolve(candidate)
            if self.is_executable(path):
                debug_log(f"[LOCATOR] Found executable: {path}")
                return path.absolute()

            if Path(str(candidate)).name == str(candidate):
                on_path = shutil.which(str(candidate))
                if on_path and self.is_executable(Path(on_path)):
                    debug_log(f"[LOCATOR] Found executable on PATH: {on_path}")
                    return Path(on_path).absolute()

        debug_log("[LOCATOR] No executable found in candidate locations")
        return None

    def locate_model(self, candidates: Iterable, suffix: str | None = None) -> Path | None:
        """
        Return the first candidate that is an existing model file.

        Args:
            candidates: Ordered candidate paths
            suffix: Required file extension (e.g. ".gguf"), case-insensitive

        Returns:
            Absolute path of the first match, or None
        """
        for candidate in candidates:
            path = self._resolve(candidate)
            if not path.is_file():
                continue
            if suffix and path.suffix.lower() != suffix.lower():
                debug_log(f"[LOCATOR] Skipping {path}: expected {suffix} file")
                continue
            debug_log(f"[LOCATOR] Found model file: {path}")
            return path.absolute()

        debug_log(f"[LOCATOR] No {suffix or 'model'} file found in candidate locations")
        return None

