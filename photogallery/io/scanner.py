"""
Photo discovery for the gallery build
Walks the photo root and describes every image file found, without writing
anything to disk.
"""

import os
import logging
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import FrozenSet, Iterable, Iterator, Sequence, Tuple

from photogallery.exceptions import ScanRootError, ScanRootMissing

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.webp')
DEFAULT_CATEGORY = 'General'
TEMP_MARKER = '.temp.'


def derive_category(relative_path: str) -> str:
    """
    Category of a photo from its path relative to the scan root

    The top-level directory name with its first letter upper-cased, or
    'General' for files directly in the root.
    """
    parts = PurePosixPath(relative_path).parts
    if len(parts) < 2:
        return DEFAULT_CATEGORY
    top = parts[0]
    return top[:1].upper() + top[1:]


def derive_title(file_name: str) -> str:
    """Human readable title: extension stripped, '-' and '_' become spaces."""
    stem = PurePosixPath(file_name).stem
    return stem.replace('-', ' ').replace('_', ' ').strip()


@dataclass(frozen=True)
class DiscoveredFile:
    """An image file found under the scan root."""

    absolute_path: Path
    relative_path: str  # POSIX separators, relative to the scan root
    category: str

    @property
    def base_name(self) -> str:
        return PurePosixPath(self.relative_path).stem

    @property
    def title(self) -> str:
        return derive_title(self.relative_path)


def find_stem_collisions(files: Iterable[DiscoveredFile]) -> FrozenSet[str]:
    """
    Relative paths of files that share a directory and a stem with another file

    Stems are compared case-insensitively, so `a.jpg`, `a.png` and `A.webp`
    in one directory all collide.
    """
    groups = defaultdict(list)
    for file in files:
        path = PurePosixPath(file.relative_path)
        groups[(path.parent.as_posix(), path.stem.lower())].append(file.relative_path)
    return frozenset(p for group in groups.values() if len(group) > 1 for p in group)


class FileScanner:
    """Finds image files under a root directory"""

    def __init__(self, root: Path, extensions: Sequence[str] = DEFAULT_EXTENSIONS,
                 exclude: Iterable[Path] = ()):
        """
        Initialize FileScanner

        Args:
            root: Directory to scan
            extensions: Allowed file extensions, matched case-insensitively
            exclude: Directories to skip entirely (e.g. a thumbnails root
                that lives inside the photo root)
        """
        self.root = Path(root)
        self.extensions = frozenset(e.lower() if e.startswith('.') else f'.{e.lower()}'
                                    for e in extensions)
        self._excluded = frozenset(self._resolve(p) for p in exclude)

    @staticmethod
    def _resolve(path: Path) -> str:
        return os.path.normcase(os.path.abspath(str(path)))

    def is_image(self, name: str) -> bool:
        if name.startswith('.') or TEMP_MARKER in name:
            return False
        return os.path.splitext(name)[1].lower() in self.extensions

    def iter_files(self) -> Iterator[DiscoveredFile]:
        """
        Lazily yield every image file under the root, depth-first

        Entries are visited in name order so the sequence is stable for a
        given file system snapshot. Symlinked directories are not
        followed.

        Raises:
            ScanRootMissing: the root does not exist
            ScanRootError: the root cannot be listed
        """
        if not self.root.exists():
            raise ScanRootMissing(self.root)
        if not self.root.is_dir():
            raise ScanRootError(self.root, "not a directory")

        try:
            entries = self._list(self.root)
        except OSError as e:
            raise ScanRootError(self.root, str(e)) from e

        yield from self._walk(entries, ())

    def scan(self) -> Tuple[DiscoveredFile, ...]:
        """Return all discovered files as an immutable tuple."""
        files = tuple(self.iter_files())
        logger.info(f"Found {len(files)} image files in {self.root}")
        return files

    def _list(self, directory: Path):
        with os.scandir(directory) as it:
            return sorted(it, key=lambda entry: entry.name)

    def _walk(self, entries, prefix: Tuple[str, ...]) -> Iterator[DiscoveredFile]:
        for entry in entries:
            try:
                # Linked directories can point back at an ancestor
                is_dir = entry.is_dir(follow_symlinks=False)
                is_file = entry.is_file()
            except OSError as e:
                logger.debug(f"Skipping unreadable entry {entry.path}: {e}")
                continue

            if is_dir:
                if entry.name.startswith('.') or self._resolve(entry.path) in self._excluded:
                    continue
                try:
                    children = self._list(Path(entry.path))
                except OSError as e:
                    logger.debug(f"Skipping unreadable directory {entry.path}: {e}")
                    continue
                yield from self._walk(children, prefix + (entry.name,))
            elif is_file and self.is_image(entry.name):
                relative = '/'.join(prefix + (entry.name,))
                yield DiscoveredFile(
                    absolute_path=Path(entry.path),
                    relative_path=relative,
                    category=derive_category(relative),
                )

