"""
File writing helpers

Every file the build produces (thumbnails, rewritten sources, the manifest)
goes through atomic_write so a crash never leaves a half-written file where
the site expects a complete one.
"""

import os
import tempfile
from pathlib import Path

TEMP_SUFFIX = ".temp.tmp"  # the scanner skips names containing ".temp."
DEFAULT_MODE = 0o644


def atomic_write(path: Path, data: bytes) -> None:
    """
    Write data to path through a temp file in the same directory

    The parent directory is created if needed. An existing file's permission
    bits are carried over to the replacement.
    """
    path = Path(path)
    try:
        mode = path.stat().st_mode & 0o777
    except FileNotFoundError:
        mode = DEFAULT_MODE
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.",
                                    suffix=TEMP_SUFFIX)
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise
