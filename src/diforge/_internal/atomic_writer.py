from __future__ import annotations

import logging
import os
import tempfile
from contextlib import suppress
from pathlib import Path

from diforge.exceptions import DIForgeFileNotWritableError

logger = logging.getLogger(__name__)

_TEMP_PREFIX = "swap"


class AtomicFileWriter:
    """Write cache artifacts so readers never observe a partial file.

    The payload goes to a temporary file in the target's directory which is
    then renamed over the target. Rename within one directory is atomic, so a
    concurrent reader sees either the previous content or the new one.
    """

    def __call__(self, target: Path, content: str) -> None:
        """Write ``content`` to ``target`` atomically.

        Args:
            target: Destination file path.
            content: Text payload, written as UTF-8.

        Raises:
            DIForgeFileNotWritableError: If the temporary write, the encoding
                of ``content`` or the rename fails. The temporary file is
                removed and nothing is retried.

        """
        target = Path(target)
        temp_path: str | None = None
        try:
            fd, temp_path = tempfile.mkstemp(dir=target.parent, prefix=_TEMP_PREFIX)
            with os.fdopen(fd, "w", encoding="utf-8") as temp_file:
                temp_file.write(content)
            os.replace(temp_path, target)
        except (OSError, ValueError) as error:
            if temp_path is not None:
                with suppress(FileNotFoundError):
                    os.unlink(temp_path)
            logger.warning("Failed to write %s: %s", target, error)
            raise DIForgeFileNotWritableError(target) from error


def ensure_directory(path: Path) -> None:
    """Create ``path`` if needed, tolerating a concurrent creator.

    Check, create, re-check: another process winning the creation race is not
    an error.

    Raises:
        DIForgeFileNotWritableError: If the directory still does not exist.

    """
    if path.is_dir():
        return
    with suppress(OSError):
        path.mkdir(parents=True)
    if not path.is_dir():
        raise DIForgeFileNotWritableError(path)


__all__ = ["AtomicFileWriter", "ensure_directory"]
