"""Scratch file allocation and cleanup.

Every intermediate file lives directly in the scratch directory and is
named ``{prefix}_{epoch_ms}_{random}{suffix}`` so concurrent attempts never
collide and the janitor can classify files by prefix alone.

Each file is paired with a cleanup closure created at allocation time.
Closures are idempotent and never raise, because the janitor may have
removed the file first.
"""

import secrets
import time
from collections.abc import Callable
from pathlib import Path

from app.core.logging import get_logger

logger = get_logger(__name__)

Cleanup = Callable[[], None]


class ScratchSpace:
    """Allocates uniquely named scratch paths.

    Example:
        >>> scratch = ScratchSpace("/tmp/reelrelay")
        >>> path = scratch.allocate("google_drive")
        >>> path.name
        'google_drive_1718000000000_9f3a61c2.mp4'
    """

    def __init__(self, root: Path | str) -> None:
        """Initialize ScratchSpace.

        Args:
            root: Scratch directory (created if missing)
        """
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def allocate(self, prefix: str, suffix: str = ".mp4") -> Path:
        """Reserve a unique path; the file itself is not created.

        Args:
            prefix: Purpose prefix, e.g. "download" or a profile name
            suffix: File extension including the dot

        Returns:
            Unique path inside the scratch directory
        """
        stem = prefix.rstrip("_") or "working"
        name = f"{stem}_{int(time.time() * 1000)}_{secrets.token_hex(4)}{suffix}"
        return self.root / name


def make_cleanup(path: Path) -> Cleanup:
    """Create an idempotent deletion closure for a scratch file.

    Args:
        path: File to delete

    Returns:
        Closure that removes the file at most once and never raises
    """
    done = False

    def cleanup() -> None:
        nonlocal done
        if done:
            return
        done = True
        try:
            path.unlink(missing_ok=True)
            logger.debug("Scratch file removed", path=str(path))
        except OSError as e:
            logger.warning("Failed to remove scratch file", path=str(path), error=str(e))

    return cleanup


class CleanupStack:
    """Collects cleanup closures and runs them in reverse order of acquisition."""

    def __init__(self) -> None:
        self._items: list[tuple[str, Cleanup]] = []

    def push(self, cleanup: Cleanup, label: str = "") -> None:
        """Register a closure.

        Args:
            cleanup: Closure to run at release time
            label: Name used in logs
        """
        self._items.append((label, cleanup))

    def release_last(self) -> bool:
        """Run the most recently registered closure now.

        Returns:
            False when the stack was empty
        """
        if not self._items:
            return False
        self._run(*self._items.pop())
        return True

    def release(self) -> int:
        """Run every registered closure once, most recent first.

        Returns:
            Number of closures run
        """
        count = 0
        while self._items:
            self._run(*self._items.pop())
            count += 1
        return count

    def _run(self, label: str, cleanup: Cleanup) -> None:
        try:
            cleanup()
        except Exception as e:
            logger.warning("Cleanup failed", label=label, error=str(e), exc_info=True)

    def __len__(self) -> int:
        return len(self._items)


__all__ = ["Cleanup", "CleanupStack", "ScratchSpace", "make_cleanup"]
