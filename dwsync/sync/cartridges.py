"""Cartridge discovery and the cartridge index."""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional, Union

from ..exceptions import NoCartridgesError

logger = logging.getLogger(__name__)

MARKER_FILE_NAME = ".project"
"""Eclipse project file present in every cartridge directory"""

CARTRIDGE_NATURE = "com.demandware.studio.core.beehiveNature"
"""Project nature that marks a ``.project`` file as a cartridge"""

EXCLUDED_SEGMENT = "node_modules"

DEFAULT_DISCOVERY_DEPTH = 5


@dataclass(frozen=True)
class Cartridge:
    """A cartridge directory inside a project."""

    root_path: Path
    """Absolute path to the cartridge directory"""

    name: str = field(compare=False)
    """Last path segment of ``root_path``"""

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "Cartridge":
        root_path = Path(path).absolute()
        return cls(root_path=root_path, name=root_path.name)

    def relative_to(self, project_root: Path) -> str:
        """Cartridge path relative to the project root (forward slashes)."""
        return self.root_path.relative_to(project_root).as_posix()


def is_cartridge(directory: Path) -> bool:
    """Check whether a directory carries the cartridge marker.

    Args:
        directory: Candidate directory

    Returns:
        True if ``.project`` exists and declares the cartridge nature
    """
    marker = directory / MARKER_FILE_NAME
    try:
        content = marker.read_text(encoding="utf-8", errors="replace")
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return False
    except OSError as e:
        logger.debug(f"Cannot read {marker}: {e}")
        return False
    return CARTRIDGE_NATURE in content


def _iter_directories(root: Path, max_depth: int) -> Iterator[Path]:
    """Yield directories below ``root`` breadth-first, up to ``max_depth``.

    Directories whose root-relative path contains ``node_modules`` are
    neither yielded nor descended into.
    """
    queue: deque[tuple[Path, int]] = deque([(root, 0)])

    while queue:
        directory, depth = queue.popleft()
        if depth >= max_depth:
            continue

        try:
            children = sorted(
                (p for p in directory.iterdir() if p.is_dir() and not p.is_symlink()),
                key=lambda p: p.name,
            )
        except PermissionError:
            logger.debug(f"Permission denied: {directory}")
            continue

        for child in children:
            if EXCLUDED_SEGMENT in child.relative_to(root).as_posix():
                continue
            yield child
            queue.append((child, depth + 1))


def discover(
    root: Union[str, Path], max_depth: int = DEFAULT_DISCOVERY_DEPTH
) -> list[Cartridge]:
    """Find all cartridges under a project root.

    Args:
        root: Project root directory
        max_depth: How many directory levels below ``root`` to search

    Returns:
        Cartridges in discovery order; empty if none qualify
    """
    root = Path(root).absolute()
    cartridges = [
        Cartridge.from_path(directory)
        for directory in _iter_directories(root, max_depth)
        if is_cartridge(directory)
    ]
    logger.debug(f"Discovered {len(cartridges)} cartridge(s) under {root}")
    return cartridges


@dataclass(frozen=True)
class CartridgeIndex:
    """Immutable snapshot of the cartridges of one project.

    A rescan produces a new snapshot; existing snapshots never change.
    """

    project_root: Path
    cartridges: tuple[Cartridge, ...] = ()

    @classmethod
    def build(
        cls, project_root: Union[str, Path], max_depth: int = DEFAULT_DISCOVERY_DEPTH
    ) -> "CartridgeIndex":
        """Scan a project root and build a snapshot.

        Raises:
            NoCartridgesError: If no cartridge is found
        """
        project_root = Path(project_root).absolute()
        cartridges = discover(project_root, max_depth=max_depth)
        if not cartridges:
            raise NoCartridgesError(f"No cartridges found in {project_root}")
        return cls(project_root=project_root, cartridges=tuple(cartridges))

    def __iter__(self) -> Iterator[Cartridge]:
        return iter(self.cartridges)

    def __len__(self) -> int:
        return len(self.cartridges)

    @property
    def names(self) -> list[str]:
        return [c.name for c in self.cartridges]


class CartridgeRegistry:
    """Holds the current cartridge index of a sync session.

    Readers take :attr:`current` once and work on that snapshot; a refresh
    swaps in a new snapshot without touching the old one.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        max_depth: int = DEFAULT_DISCOVERY_DEPTH,
    ):
        self.project_root = Path(project_root).absolute()
        self.max_depth = max_depth
        self._current: Optional[CartridgeIndex] = None
        self._refresh_lock = threading.Lock()

    @property
    def current(self) -> CartridgeIndex:
        """The latest snapshot, scanning on first access."""
        index = self._current
        if index is None:
            index = self.refresh()
        return index

    def refresh(self) -> CartridgeIndex:
        """Rescan the project root and replace the whole index.

        Raises:
            NoCartridgesError: If the rescan finds nothing; the previous
                snapshot is kept in that case
        """
        with self._refresh_lock:
            index = CartridgeIndex.build(self.project_root, max_depth=self.max_depth)
            self._current = index
        logger.info(f"Cartridge index refreshed: {', '.join(index.names)}")
        return index
