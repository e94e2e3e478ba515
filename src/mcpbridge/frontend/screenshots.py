"""Helpers for screenshot results returned by the extension."""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from pathlib import Path

from mcpbridge.exceptions import InvalidToolArgumentsError

logger = logging.getLogger(__name__)

DEFAULT_SCREENSHOTS_DIR = ".chrome-mcp-bridge/images"


def strip_data_url(data_url: str) -> str:
    """Return the base64 payload of a ``data:image/...;base64,`` URL."""
    _, sep, payload = data_url.partition(",")
    return payload if sep else data_url


def default_filename(image_format: str) -> str:
    """``screenshot-<UTC timestamp>.<format>`` with filesystem-safe separators."""
    now = datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
    return f"screenshot-{stamp}.{image_format}"


def save_screenshot(
    image_b64: str,
    image_format: str,
    cwd: str,
    *,
    filename: str | None = None,
    dir_name: str = DEFAULT_SCREENSHOTS_DIR,
) -> Path:
    """Decode ``image_b64`` and write it under ``<cwd>/<dir_name>/``.

    Args:
        image_b64: Base64 image data (no ``data:`` prefix).
        image_format: ``png`` or ``jpeg``; used for generated filenames.
        cwd: The caller's working directory.
        filename: Optional file name. Directory components are dropped.
        dir_name: Directory relative to ``cwd``.

    Returns:
        Path of the written file.

    Raises:
        InvalidToolArgumentsError: The image data is not valid base64.
    """
    try:
        data = base64.b64decode(image_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidToolArgumentsError(f"Screenshot data is not valid base64: {exc}") from exc

    images_dir = Path(cwd) / dir_name
    images_dir.mkdir(parents=True, exist_ok=True)

    name = Path(filename).name if filename else ""
    if name in ("", ".", ".."):
        name = default_filename(image_format)
    target = images_dir / name
    target.write_bytes(data)
    logger.info("Saved screenshot (%d bytes) to %s", len(data), target)
    return target
