"""
Configuration for GrabStudio.

Overlay appearance and engine tuning. Settings can be read from a JSON
file; they are never written back.
"""

import json
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Optional, Tuple, Union

logger = logging.getLogger("grabstudio.config")

CONFIG_FILE = Path.home() / ".grabstudio.json"

# Correction strokes stamp a (2 * BRUSH_RADIUS + 1) square per recorded point
BRUSH_RADIUS = 2

# Alpha byte above which an exported pixel becomes transparent
EXPORT_ALPHA_THRESHOLD = 128


@dataclass
class StudioSettings:
    """
    Tunable settings.

    Colors are 8-bit RGB tuples.
    """
    # Selection feedback
    rect_color: Tuple[int, int, int] = (0, 128, 128)        # dark cyan
    foreground_color: Tuple[int, int, int] = (255, 0, 0)    # red
    background_color: Tuple[int, int, int] = (0, 0, 255)    # blue
    rect_pen_width: int = 2
    stroke_pen_width: int = 4

    # Engine
    smoothness_gamma: float = 50.0

    # Continuous refinement
    max_refine_iterations: int = 20


def load_settings(path: Optional[Union[str, Path]] = None) -> StudioSettings:
    """
    Load settings from a JSON file.

    Unknown keys are ignored. A missing or unreadable file yields defaults.
    """
    path = Path(path) if path is not None else CONFIG_FILE
    try:
        if path.exists():
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            known_fields = {f.name for f in StudioSettings.__dataclass_fields__.values()}
            filtered = {k: v for k, v in data.items() if k in known_fields}
            for key in ("rect_color", "foreground_color", "background_color"):
                if key in filtered:
                    filtered[key] = tuple(filtered[key])
            return StudioSettings(**filtered)
    except (OSError, ValueError, TypeError) as e:
        logger.warning(f"Could not load settings from {path}: {e}")
    return StudioSettings()
