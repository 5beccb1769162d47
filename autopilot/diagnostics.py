"""Screenshots taken at decision points and on failure."""
from __future__ import annotations

from datetime import datetime
from pathlib import Path

from autopilot.log import get_logger
from autopilot.surfaces.base import Surface

log = get_logger(__name__)


def capture(surface: Surface, directory: Path, name: str) -> Path | None:
    """Save a screenshot as ``<name>-<timestamp>.png``; never raises."""
    stamp = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
    path = directory / f"{name}-{stamp}.png"
    try:
        saved = surface.screenshot(path)
    except Exception as e:
        log.warning("Could not capture %s: %s", name, e)
        return None
    log.info("Saved %s", saved.name)
    return saved
