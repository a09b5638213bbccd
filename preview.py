"""
Local preview references for compressed images.

A preview is a file:// URI pointing at a temporary copy of the encoded
bytes. It stays valid until revoke_preview() is called; references that
are never revoked stay on disk for the rest of the process.
"""

import os
import tempfile
import threading
from pathlib import Path
from typing import Dict, List, Optional

from assets import EncodedResult
from utilities import Print

_previews: Dict[str, Path] = {}
_previews_lock = threading.Lock()


def create_preview(result: EncodedResult, directory: Optional[Path] = None) -> str:
    """
    Write result to a temporary file and return its URI.

    Args:
        result: Encoded output of the pipeline
        directory: Where to put the file (system temp directory if None)

    Returns:
        file:// URI the caller must pass to revoke_preview() when done
    """
    if directory is not None:
        Path(directory).mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix='webfit_preview_', suffix=result.extension, dir=directory)
    with os.fdopen(fd, 'wb') as f:
        f.write(result.data)

    path = Path(name)
    uri = path.resolve().as_uri()
    with _previews_lock:
        _previews[uri] = path
    Print("DEBUG", f"Preview created: {uri}")
    return uri


def revoke_preview(uri: str) -> bool:
    """
    Release a preview reference.

    Returns:
        True if the reference was live, False if unknown or already revoked
    """
    with _previews_lock:
        path = _previews.pop(uri, None)
    if path is None:
        return False
    path.unlink(missing_ok=True)
    Print("DEBUG", f"Preview revoked: {uri}")
    return True


def active_previews() -> List[str]:
    """URIs created and not yet revoked."""
    with _previews_lock:
        return list(_previews)
