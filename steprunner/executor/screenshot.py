"""Screenshot correlation: maps a step's output to the screenshot it produced."""

from __future__ import annotations

import logging
import re
from pathlib import Path, PureWindowsPath
from typing import Iterable, Optional

from steprunner.models.provider import ContentBlock

from .output_parser import joined_text

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ("png", "jpg", "jpeg")

_SCREENSHOT_RE = re.compile(
    r"""[^\s"'()\[\]`]+?\.(?:png|jpe?g)(?![\w])""",
    re.IGNORECASE,
)


def find_screenshot_names(text: str) -> list[str]:
    """Return every image-like filename token in ``text``, in order of appearance."""
    return _SCREENSHOT_RE.findall(text or "")


class ScreenshotCorrelator:
    """Derives the expected screenshot path for a step, never touching the disk."""

    def __init__(self, screenshots_dir: str | Path):
        self.screenshots_dir = Path(screenshots_dir)

    def correlate(self, content: Iterable[ContentBlock]) -> Optional[str]:
        matches = find_screenshot_names(joined_text(content))
        if not matches:
            return None
        # Later filenames describe the final captured state.
        filename = PureWindowsPath(matches[-1]).name
        path = str(self.screenshots_dir / filename)
        logger.debug("Correlated screenshot %s (%d candidate(s))", path, len(matches))
        return path
