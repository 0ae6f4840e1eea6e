from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .logger import get_logger

log = get_logger(__name__)

ConflictPolicy = Literal["registration", "priority"]


class RuntimeSettings(BaseModel):
    # Refresh coordinator
    debounce_delay: float = Field(0.5, ge=0.0)
    chunk_size: int = Field(500, ge=1)
    slice_budget: Optional[float] = Field(None, gt=0.0)

    # Bundle folders: {bundleFolder}/{subfolder}/{bundle_data_file}
    bundle_data_file: str = "data.json"
    bundle_preview_file: str = "preview.png"
    preview_prefix: str = "Blueprint_"

    # Fragment folders: {fragmentFolder}/{fragment_pattern}
    fragment_pattern: str = "*.json"

    pixels_per_unit: float = Field(100.0, gt=0.0)
    conflict_policy: ConflictPolicy = "registration"
    manifest_name: str = "assetredux.json"


_ENV_OVERRIDES = {
    "ASSET_REDUX_DEBOUNCE": "debounce_delay",
    "ASSET_REDUX_CHUNK_SIZE": "chunk_size",
}


def load_settings(path: Optional[Path] = None) -> RuntimeSettings:
    """
    Load runtime settings.

    Reads an optional JSON file, then applies ASSET_REDUX_DEBOUNCE and
    ASSET_REDUX_CHUNK_SIZE from the environment on top of it.
    """
    data: dict = {}
    if path is not None:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a JSON object: {path}")
        log.debug(f"Loaded settings from {path}")

    for env_name, field_name in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw:
            log.debug(f"Using {field_name}={raw} from {env_name}")
            data[field_name] = raw

    return RuntimeSettings.model_validate(data)
