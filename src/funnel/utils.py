from __future__ import annotations

import os
from pathlib import Path


def is_empty(path: Path) -> bool:
    with os.scandir(path) as entries:
        for _ in entries:
            return False
    return True


def ensure_dir(path: Path) -> bool:
    """Create `path` if it is not a directory. Returns True when it was created."""
    if path.is_dir():
        return False
    path.mkdir(parents=True, exist_ok=True)
    return True


def is_job_file(path: Path) -> bool:
    return path.is_file() and not path.name.startswith(".")


def list_user_dirs(root: Path) -> list[Path]:
    return sorted(
        [path for path in root.iterdir() if path.is_dir() and not path.name.startswith(".")],
        key=lambda p: p.name,
    )


def list_job_files(user_dir: Path) -> list[Path]:
    return sorted([path for path in user_dir.iterdir() if is_job_file(path)], key=lambda p: p.name)
