"""
netbridge/files/reclaimer.py
Scratch Reclaimer: wipe everything under a directory, keep going on errors.

The root itself is kept. Files are deleted, then each emptied directory.
A failed deletion is logged and skipped; reclaim() never raises for it and
its return value does not say whether anything failed (check the log).
Symlinks are unlinked, never followed.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Union

logger = logging.getLogger(__name__)


@dataclass
class ReclaimStats:
    deleted_count: int = 0
    total_bytes: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"deleted_count": self.deleted_count, "total_bytes": self.total_bytes}


def _reclaim_into(directory: str, stats: ReclaimStats) -> None:
    try:
        with os.scandir(directory) as it:
            entries = list(it)
    except OSError as e:
        logger.warning(f"[Reclaim] Unable to read directory {directory}: {e}")
        return

    for entry in entries:
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
        except OSError:
            is_dir = False

        if is_dir:
            _reclaim_into(entry.path, stats)
            try:
                os.rmdir(entry.path)
            except OSError as e:
                logger.warning(f"[Reclaim] Failed to remove directory {entry.path}: {e}")
            else:
                stats.deleted_count += 1
            continue

        try:
            stats.total_bytes += entry.stat(follow_symlinks=False).st_size
        except OSError:
            pass
        try:
            os.unlink(entry.path)
        except OSError as e:
            logger.warning(f"[Reclaim] Failed to remove file {entry.path}: {e}")
        else:
            stats.deleted_count += 1


def reclaim(root: Union[str, Path]) -> ReclaimStats:
    """
    Delete the contents of `root`, depth-first.

    A missing root yields zero stats. Blocking; see reclaim_async().
    """
    stats = ReclaimStats()
    root = Path(root)
    if not root.exists():
        logger.info(f"[Reclaim] {root} does not exist, nothing to do")
        return stats

    logger.info(f"[Reclaim] Starting cleanup of {root}")
    _reclaim_into(str(root), stats)
    logger.info(f"[Reclaim] Cleanup completed: removed {stats.deleted_count} items, total size {stats.total_bytes} bytes")
    return stats


async def reclaim_async(root: Union[str, Path]) -> ReclaimStats:
    """Run reclaim() on a worker thread so the event loop keeps serving."""
    return await asyncio.to_thread(reclaim, root)
