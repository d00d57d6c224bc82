"""
Atomic file replacement for generated targets.

Writes go to a temp file in the target's directory, which is then renamed
over the target. A crash before the rename leaves the original untouched;
a crash after it leaves the new content fully written. Readers never see
a partial file.
"""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

READ_ONLY_MODE = 0o444
WRITABLE_MODE = 0o644

TEMP_SUFFIX = ".genie.tmp"


def atomic_write(target: Path, content: str, mode: int = WRITABLE_MODE) -> None:
    """Replace ``target`` with ``content`` without exposing a partial file.

    Args:
        target: File to write. Its parent directory must exist.
        content: Full new content (written as UTF-8, newlines untouched).
        mode: Final permission bits, applied to the temp file before rename.

    Raises:
        OSError: The original error of whichever step failed. The temp
            file is removed first.
    """
    # Read-only targets from a previous run must be writable again.
    if target.exists() and not os.access(target, os.W_OK):
        with contextlib.suppress(OSError):
            target.chmod(WRITABLE_MODE)

    fd, tmp_name = tempfile.mkstemp(
        dir=target.parent,
        prefix=f".{target.name}.",
        suffix=TEMP_SUFFIX,
    )
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        tmp.chmod(mode)
        os.replace(tmp, target)
        logger.debug("Wrote %s (%d bytes)", target, len(content))
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink(missing_ok=True)
        raise
