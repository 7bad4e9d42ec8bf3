"""Persistence of uploaded binary artifacts.

Processing flow:
    1. Decode the base64 payload carried by a binary message.
    2. Create the upload directory on first use.
    3. Write the bytes under a uuid4 filename with the message's extension.

Only used by the image-answer path when `NlipSettings.save_uploads` is set.
"""

import base64
import binascii
import logging
import os
import uuid

from nlip.core.errors import ArtifactStorageError, PayloadError


logger = logging.getLogger(__name__)


def decode_base64_content(content: str) -> bytes:
    """Decode base64 message content, accepting an optional `data:` URI prefix.

    Raises:
        PayloadError: Content is not valid base64.
    """
    if content.startswith("data:") and "," in content:
        content = content.split(",", 1)[1]
    try:
        return base64.b64decode(content, validate=True)
    except (binascii.Error, ValueError) as err:
        raise PayloadError("Unable to decode base64 content") from err


def save_binary_artifact(data: bytes, extension: str, base_dir: str) -> str:
    """Write `data` to `<base_dir>/<uuid>.<extension>` and return the path.

    Raises:
        ArtifactStorageError: Directory creation or file write failed.
    """
    filename = f"{uuid.uuid4()}.{extension.strip().lower().lstrip('.')}"
    path = os.path.join(base_dir, filename)

    try:
        os.makedirs(base_dir, exist_ok=True)
    except OSError as err:
        logger.exception("Unable to create uploads directory %s", base_dir)
        raise ArtifactStorageError("Unable to create uploads directory") from err

    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as err:
        logger.exception("Unable to save artifact %s", path)
        raise ArtifactStorageError("Unable to save file") from err

    logger.info("Saved binary artifact %s (%d bytes)", path, len(data))
    return path
