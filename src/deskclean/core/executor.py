"""Sweep executor: relocates a source tree into a target directory."""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path

from deskclean.core.errors import EntryRelocationFailed, SourceUnreadable, TargetCreationFailed
from deskclean.models.sweep_result import SweepResult
from deskclean.utils import file_lock, format_elapsed, sweep_lock_path

log = logging.getLogger(__name__)


def is_hidden(name: str) -> bool:
    """Check if a file or directory name marks a hidden entry."""
    return name.startswith(".")


class _Tally:
    """Mutable counters for a sweep in progress."""

    def __init__(self, source_root: Path, target_root: Path) -> None:
        self.source_root = source_root
        self.target_root = target_root
        self.moved = 0
        self.skipped = 0
        self.errors: list[str] = []
        self.target_ready = False
        self.target_created = False
        self.started = time.monotonic()

    def freeze(self) -> SweepResult:
        return SweepResult(
            source_root=self.source_root,
            target_root=self.target_root,
            moved_count=self.moved,
            skipped_count=self.skipped,
            error_count=len(self.errors),
            target_created=self.target_created,
            errors=tuple(self.errors),
            elapsed=time.monotonic() - self.started,
        )


class SweepExecutor:
    """Performs one directory-to-directory relocation pass per call.

    Sweeps of the same source root are serialized: across threads by an
    in-process lock, across processes (CLI, daemon, D-Bus service) by an
    ``flock`` on a lock file in the runtime directory.
    """

    _source_locks: dict[str, threading.Lock] = {}
    _source_locks_guard = threading.Lock()

    def sweep(self, source_root: Path | str, target_root: Path | str) -> SweepResult:
        """Move every non-hidden entry from *source_root* into *target_root*.

        The target directory is only created once the first movable entry
        is found. Per-entry failures are counted, not raised.

        Raises:
            SourceUnreadable: The source root could not be listed.
            TargetCreationFailed: The target root could not be created.
        """
        source = Path(source_root)
        target = Path(target_root)
        with self._lock_for(source), file_lock(sweep_lock_path(source)):
            return self._sweep(source, target)

    @classmethod
    def _lock_for(cls, source: Path) -> threading.Lock:
        # Keyed on the source only: targets change daily, sources rarely.
        key = os.path.abspath(source)
        with cls._source_locks_guard:
            lock = cls._source_locks.get(key)
            if lock is None:
                lock = cls._source_locks[key] = threading.Lock()
            return lock

    def _sweep(self, source: Path, target: Path) -> SweepResult:
        tally = _Tally(source, target)

        try:
            root_entries = _list_dir(source)
        except OSError as exc:
            log.error("Cannot read sweep source %s: %s", source, exc)
            raise SourceUnreadable(f"Cannot read {source}: {exc}", source, target) from exc

        # Depth-first, pre-order: a directory's children are visited before its next sibling.
        stack: list[list[os.DirEntry]] = [list(reversed(root_entries))]
        while stack:
            pending = stack[-1]
            if not pending:
                stack.pop()
                continue
            entry = pending.pop()
            descend = self._visit(entry, tally)
            if descend:
                try:
                    children = _list_dir(Path(entry.path))
                except OSError as exc:
                    log.warning("Cannot read directory %s: %s", entry.path, exc)
                    continue
                stack.append(list(reversed(children)))

        result = tally.freeze()
        log.info("Skipped %d hidden entries in %s", result.skipped_count, source)
        log.info(
            "Moved %d entries to %s (%d errors) in %s",
            result.moved_count,
            target,
            result.error_count,
            format_elapsed(result.elapsed),
        )
        return result

    def _visit(self, entry: os.DirEntry, tally: _Tally) -> bool:
        """Classify and relocate one entry. Returns True if the walk should descend into it."""
        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
        except OSError as exc:
            log.debug("Cannot stat %s: %s", entry.path, exc)
            return False
        if not (is_dir or is_file):
            log.debug("Ignoring special file: %s", entry.path)
            return False

        if is_hidden(entry.name):
            tally.skipped += 1
            log.debug("Skipping hidden entry: %s", entry.path)
            return False

        self._ensure_target(tally)

        rel = Path(entry.path).relative_to(tally.source_root)
        try:
            self._relocate(Path(entry.path), tally.target_root / rel, tally)
        except EntryRelocationFailed as exc:
            tally.errors.append(str(exc))
            log.warning("Failed to move %s", exc)
            # Children of a directory left behind still get their own attempt.
            return is_dir

        tally.moved += 1
        return False

    @staticmethod
    def _ensure_target(tally: _Tally) -> None:
        if tally.target_ready:
            return
        target = tally.target_root
        existed = target.is_dir()
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log.error("Unable to create target directory %s: %s", target, exc)
            raise TargetCreationFailed(
                f"Cannot create {target}: {exc}",
                tally.source_root,
                target,
                result=tally.freeze(),
            ) from exc
        tally.target_ready = True
        tally.target_created = not existed
        if tally.target_created:
            log.info("Created target directory %s", target)

    @staticmethod
    def _relocate(src: Path, dst: Path, tally: _Tally) -> None:
        if os.path.lexists(dst):
            raise EntryRelocationFailed(
                f"{src}: destination already exists: {dst}",
                tally.source_root,
                tally.target_root,
                entry=src,
            )
        try:
            os.rename(src, dst)
        except OSError as exc:
            raise EntryRelocationFailed(
                f"{src}: {exc}",
                tally.source_root,
                tally.target_root,
                entry=src,
            ) from exc
        log.debug("Moved %s -> %s", src, dst)


def _list_dir(path: Path) -> list[os.DirEntry]:
    """List a directory in name order."""
    with os.scandir(path) as it:
        return sorted(it, key=lambda e: e.name)
