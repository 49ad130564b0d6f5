"""Attachment storage: write uploaded files to disk.

Files are stored per dispatch: {base_dir}/{dispatch_id}/{attachment_id}{ext}
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from fieldops.config import get_settings

_settings = get_settings()
_BASE = Path(_settings.attachments.base_dir)


def _ensure_dir(dispatch_id: str) -> Path:
    target = _BASE / dispatch_id
    target.mkdir(parents=True, exist_ok=True)
    return target


def _save_sync(data: bytes, dispatch_id: str, attachment_id: str, file_name: str) -> str:
    ext = Path(file_name).suffix.lower()
    path = _ensure_dir(dispatch_id) / f"{attachment_id}{ext}"
    path.write_bytes(data)
    return str(path)


async def save_attachment(data: bytes, dispatch_id: str, attachment_id: str, file_name: str) -> str:
    """Persist the uploaded bytes. Returns the storage path."""
    return await asyncio.to_thread(_save_sync, data, dispatch_id, attachment_id, file_name)


def size_in_mb(data: bytes) -> float:
    return round(len(data) / 1024 / 1024, 4)
