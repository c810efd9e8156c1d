"""Image reference resolution.

Images attached to notes are stored by the backend as cloud-drive links that
browsers cannot embed directly.  :func:`resolve` rewrites them to a thumbnail
URL; :class:`ImageFallback` is the display-time retry policy used when a
resolved URL still fails to render.
"""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import re
import time
from typing import Optional

logger = logging.getLogger(__name__)

# Hosts/paths that already serve image bytes
DIRECT_MARKERS = ("googleusercontent.com", "drive.google.com/uc")

THUMBNAIL_URL = "https://drive.google.com/thumbnail?id={file_id}&sz=w2000"
EXPORT_VIEW_URL = "https://drive.google.com/uc?export=view&id={file_id}"
SMALL_THUMBNAIL_URL = "https://drive.google.com/thumbnail?id={file_id}&sz=w1000"

_FILE_PATH_RE = re.compile(r"/file/d/([^/?]+)")
_ID_PARAM_RE = re.compile(r"[?&]id=([^&]+)")
_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*),(?P<data>.*)$", re.DOTALL)


def extract_file_id(url: str) -> Optional[str]:
    """Pull the drive file id out of ``/file/d/{id}`` or ``?id={id}`` links."""
    match = _FILE_PATH_RE.search(url) or _ID_PARAM_RE.search(url)
    return match.group(1) if match else None


def resolve(raw: str) -> str:
    """Return a directly renderable URL for an image reference."""
    if not raw:
        return raw
    if raw.startswith("data:") or any(marker in raw for marker in DIRECT_MARKERS):
        return raw
    file_id = extract_file_id(raw)
    if file_id:
        return THUMBNAIL_URL.format(file_id=file_id)
    return raw


def resolve_all(raw_refs: list[str]) -> list[str]:
    """Resolve every non-blank reference, preserving order."""
    return [resolve(ref.strip()) for ref in raw_refs if ref and ref.strip()]


def image_upload_payloads(images: list[str]) -> list[dict[str, str]]:
    """Convert attached data URIs into upload records for the save call.

    Images that are already remote references are skipped; the backend only
    accepts new uploads here.
    """
    payloads: list[dict[str, str]] = []
    stamp = int(time.time() * 1000)
    for index, image in enumerate(images):
        match = _DATA_URI_RE.match(image) if image.startswith("data:") else None
        if not match or ";base64" not in (match.group("params") or ""):
            continue
        data = match.group("data")
        try:
            base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Skipping attachment %d: invalid base64 payload", index)
            continue
        mime_type = match.group("mime") or "image/png"
        extension = mimetypes.guess_extension(mime_type) or ".png"
        payloads.append(
            {
                "data": data,
                "name": f"image_{stamp}_{index}{extension}",
                "mimeType": mime_type,
            }
        )
    return payloads


class ImageFallback:
    """Render-failure policy for image URLs.

    Failing images walk a fixed sequence of URL shapes ending in a
    placeholder.  The next shape is derived from the URL that just failed,
    so no state is kept between calls and the walk only moves forward:
    every shape is tried at most once and the placeholder failing ends it.
    """

    def __init__(self, placeholder_url: str) -> None:
        self._placeholder_url = placeholder_url

    def candidates(self, image_url: str) -> list[str]:
        """The ordered fallback URLs for ``image_url``."""
        file_id = extract_file_id(image_url)
        if not file_id:
            return [self._placeholder_url]
        return [
            EXPORT_VIEW_URL.format(file_id=file_id),
            SMALL_THUMBNAIL_URL.format(file_id=file_id),
            self._placeholder_url,
        ]

    def next_source(self, failed_url: str) -> Optional[str]:
        """The URL to try after ``failed_url`` failed to render.

        Returns None when ``failed_url`` is already the last shape.
        """
        shapes = self.candidates(failed_url)
        if failed_url == self._placeholder_url:
            step = len(shapes)
        elif failed_url in shapes:
            step = shapes.index(failed_url) + 1
        else:
            step = 0
        if step >= len(shapes):
            logger.warning("All image URL formats failed for %s", failed_url)
            return None
        return shapes[step]
