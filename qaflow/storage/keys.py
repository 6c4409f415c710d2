"""
Blob key generation.
Keys are deterministic per owner + base name + extension + upload timestamp.
"""

import re
import time
import uuid
from pathlib import Path
from typing import Optional

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9._-]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_base_name(base_name: str) -> str:
    """Replace anything outside [A-Za-z0-9._-] with an underscore."""
    return _UNSAFE_KEY_CHARS.sub("_", base_name)


def upload_key(owner_id: str, base_name: str, extension: str, timestamp_ms: Optional[int] = None) -> str:
    """Key for an uploaded asset: uploads/<owner>/<ms>-<base><ext>."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"uploads/{owner_id}/{timestamp_ms}-{sanitize_base_name(base_name)}{extension}"


def staging_path(staging_root: str, owner_id: str, original_name: str) -> Path:
    """Local path a multipart upload is spooled to before pairing."""
    safe_name = _WHITESPACE.sub("_", Path(original_name.replace("\\", "/")).name)
    timestamp_ms = int(time.time() * 1000)
    return Path(staging_root) / owner_id / f"{timestamp_ms}-{uuid.uuid4().hex[:8]}-{safe_name}"


def ensure_parent_dirs(root: str, relative_path: str) -> Path:
    """Create parent directories and return the full absolute path."""
    full_path = Path(root) / relative_path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    return full_path
