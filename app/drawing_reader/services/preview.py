"""
Transient previews for uploaded drawings.

A preview is the uploaded image kept in memory under an opaque token until
the owning session releases it.
"""

import io
import logging
import uuid

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


def probe_image(data: bytes) -> tuple[int, int] | None:
    """
    Return the pixel size of an encoded image, or None if Pillow cannot read it.

    Only the header is checked; the payload is never decoded or modified.
    Headers declaring more pixels than Pillow allows also yield None.
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            size = image.size
            image.verify()
        return size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError):
        return None


class PreviewStore:
    """In-memory store of preview payloads keyed by token."""

    def __init__(self) -> None:
        self._previews: dict[str, tuple[bytes, str]] = {}

    def create(self, data: bytes, mime_type: str) -> str:
        """
        Keep a preview of an uploaded image.

        Args:
            data: Encoded image payload.
            mime_type: MIME type the preview is served with.

        Returns:
            Token identifying the preview.
        """
        token = uuid.uuid4().hex
        size = probe_image(data)
        self._previews[token] = (data, mime_type)

        if size is None:
            logger.warning("Preview %s: payload not recognised as an image (%s)", token, mime_type)
        else:
            logger.info("Preview %s: %dx%d %s", token, size[0], size[1], mime_type)
        return token

    def get(self, token: str) -> tuple[bytes, str] | None:
        return self._previews.get(token)

    def release(self, token: str | None) -> None:
        """Drop a preview. Unknown tokens are ignored."""
        if token is not None and self._previews.pop(token, None) is not None:
            logger.debug("Released preview %s", token)

    def __len__(self) -> int:
        return len(self._previews)

    def __contains__(self, token: object) -> bool:
        return token in self._previews
