"""Resolution of local paths to their owning cartridge."""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Optional, Union

from .cartridges import Cartridge, CartridgeIndex

logger = logging.getLogger(__name__)


class MatchStrategy(str, Enum):
    """How a path is matched against the cartridge index."""

    FIRST_MATCH = "first_match"
    """First cartridge (in index order) whose relative path occurs anywhere
    in the event path. Overlapping names such as ``foo`` and ``foobar`` can
    resolve to the earlier one."""

    LONGEST_PREFIX = "longest_prefix"
    """Cartridge whose relative path is the longest path-component prefix of
    the event path."""


@dataclass(frozen=True)
class Resolution:
    """Owning cartridge and remote path for a local path."""

    cartridge: Cartridge
    remote_suffix: str
    """``<cartridge name>/<path within cartridge>``"""


def _relative_event_path(local_path: Union[str, Path], project_root: Path) -> Optional[str]:
    path = Path(local_path)
    if not path.is_absolute():
        return path.as_posix()
    try:
        return path.relative_to(project_root).as_posix()
    except ValueError:
        return None


class PathResolver:
    """Maps local paths to ``(cartridge, remote_suffix)``.

    Only the path string is inspected, so paths that no longer exist on
    disk resolve the same way as live ones.
    """

    def __init__(self, strategy: MatchStrategy = MatchStrategy.FIRST_MATCH):
        self.strategy = MatchStrategy(strategy)

    def resolve(
        self, local_path: Union[str, Path], index: CartridgeIndex
    ) -> Optional[Resolution]:
        """Resolve a local path against a cartridge index snapshot.

        Args:
            local_path: Absolute path, or a path relative to the project root
            index: Cartridge index snapshot

        Returns:
            Resolution, or None when no cartridge owns the path
        """
        relative_path = _relative_event_path(local_path, index.project_root)
        if relative_path is None:
            logger.debug(f"Outside project root: {local_path}")
            return None

        if self.strategy == MatchStrategy.LONGEST_PREFIX:
            return self._resolve_longest_prefix(relative_path, index)
        return self._resolve_first_match(relative_path, index)

    def _resolve_first_match(
        self, relative_path: str, index: CartridgeIndex
    ) -> Optional[Resolution]:
        for cartridge in index:
            cartridge_rel = cartridge.relative_to(index.project_root)
            position = relative_path.find(cartridge_rel)
            if position < 0:
                continue

            # Slice from the cartridge name token of the matched occurrence
            start = position + len(cartridge_rel) - len(cartridge.name)
            return Resolution(cartridge, relative_path[start:])
        return None

    def _resolve_longest_prefix(
        self, relative_path: str, index: CartridgeIndex
    ) -> Optional[Resolution]:
        parts = PurePosixPath(relative_path).parts
        best: Optional[Cartridge] = None
        best_len = 0

        for cartridge in index:
            cartridge_parts = PurePosixPath(
                cartridge.relative_to(index.project_root)
            ).parts
            if len(cartridge_parts) > best_len and parts[: len(cartridge_parts)] == cartridge_parts:
                best = cartridge
                best_len = len(cartridge_parts)

        if best is None:
            return None
        return Resolution(best, "/".join((best.name,) + parts[best_len:]))
