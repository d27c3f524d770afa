"""
Virtual Lab Assistant - Image Sync
===================================
Copies the experiment images (``settings.IMAGES_DIR``, falling back to
``./images``) into ``settings.PUBLIC_IMAGES_DIR`` so the API can serve
them under ``/images``.  Sub-directories are preserved; existing files
are overwritten.

Usage:
    python -m vlab.scripts.sync_images
"""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

from vlab.config.settings import settings  # noqa: E402
from vlab.src.utils.logger import get_logger  # noqa: E402

logger = get_logger(__name__)


def resolve_source(primary: Path, fallback: Path) -> Path:
    return primary if primary.is_dir() else fallback


def sync_images(source: Path, destination: Path) -> int:
    """Copy every file under *source* into *destination*; return the file count."""
    destination.mkdir(parents=True, exist_ok=True)
    if not source.is_dir():
        logger.warning("No images directory found at %s", source)
        return 0

    copied = 0
    for path in sorted(source.rglob("*")):
        if not path.is_file():
            continue
        target = destination / path.relative_to(source)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, target)
        copied += 1

    logger.info("Synced %d image file(s) to %s", copied, destination)
    return copied


def main() -> int:
    source = resolve_source(settings.IMAGES_DIR, Path.cwd() / "images")
    sync_images(source, settings.PUBLIC_IMAGES_DIR)
    return 0


if __name__ == "__main__":
    sys.exit(main())
