"""File primitives for import and export.

Reads are async so a caller's event loop stays free while a file loads;
the loaded text then feeds the synchronous validate→merge pipeline in one
step. Images are carried as data URLs and treated as opaque strings.
"""

from __future__ import annotations

import asyncio
import base64
import json
import mimetypes
from pathlib import Path
from typing import Any

from dtree.export.errors import ImportReadError
from dtree.observability.logging import get_logger

log = get_logger(__name__)


async def read_text(path: Path | str) -> str:
    """Read a text file without blocking the event loop.

    Raises:
        ImportReadError: If the file cannot be read or decoded.
    """
    path = Path(path)
    try:
        return await asyncio.to_thread(path.read_text, encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        log.warning("file_read_failed", path=str(path), error=str(e))
        raise ImportReadError(str(path), str(e)) from e


async def read_data_url(path: Path | str) -> str:
    """Read a file and encode it as a ``data:`` URL.

    Used to fill node icons/images and character portraits.

    Raises:
        ImportReadError: If the file cannot be read.
    """
    path = Path(path)
    try:
        raw = await asyncio.to_thread(path.read_bytes)
    except OSError as e:
        log.warning("file_read_failed", path=str(path), error=str(e))
        raise ImportReadError(str(path), str(e)) from e
    mime = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


def save_json(obj: Any, path: Path | str) -> Path:
    """Write *obj* as indented JSON, creating parent directories.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2, ensure_ascii=False), encoding="utf-8")
    log.debug("file_saved", path=str(path))
    return path
