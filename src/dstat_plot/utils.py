from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)


# -------------------------
# Path utilities
# -------------------------
def sanitize_filename_component(text: str) -> str:
    """Replace path separators so a header label can be used inside a file name."""
    return text.replace("/", "_").replace("\\", "_")


# -------------------------
# Input discovery (shared by CLI and tests)
# -------------------------
def discover_input_files(paths: Sequence[str | Path]) -> tuple[list[Path], Path]:
    """
    Resolve CLI path arguments to (csv_files, target_dir).

    - No paths: the current directory is scanned.
    - Last path is a directory: every *.csv directly inside it, sorted by name;
      the directory is the target directory for generated output names.
    - Otherwise the paths are taken as files in the given order; the target
      directory is the parent of the first file.
    """
    items = [Path(p) for p in paths] or [Path(".")]

    if items[-1].is_dir():
        target_dir = items[-1]
        files = sorted(p for p in target_dir.glob("*.csv") if p.is_file())
        logger.debug(f"Scanned {target_dir.resolve()}: {len(files)} csv file(s)")
        return files, target_dir

    return items, items[0].parent
