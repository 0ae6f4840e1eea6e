from __future__ import annotations

import os
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]

SUPPORTED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".svg"}


def normalize_path(path: str) -> str:
    """Convert both slash styles to the platform separator."""
    if not path:
        return path
    return path.replace("\\", os.sep).replace("/", os.sep)


def resolve_path(relative_path: PathLike, plugin_root: PathLike) -> str:
    """Turn a plugin-relative path into an absolute filesystem path.

    Already-absolute paths are returned normalized but otherwise untouched.
    """
    normalized = normalize_path(str(relative_path))
    if os.path.isabs(normalized):
        return normalized
    return os.path.abspath(os.path.join(str(plugin_root), normalized))


def is_supported_image(path: PathLike) -> bool:
    return Path(str(path)).suffix.lower() in SUPPORTED_IMAGE_EXTENSIONS
