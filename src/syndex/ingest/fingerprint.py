"""Content fingerprints and change detection over watched directories."""

from __future__ import annotations

import fnmatch
import hashlib
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

_INVALIDATED = ""


@dataclass
class ScanResult:
    """Delta between two scans: documents to reconcile and documents gone."""

    changed: list[tuple[str, str]] = field(default_factory=list)  # (path, fingerprint)
    removed: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.changed or self.removed)


def compute_fingerprint(path: str | Path) -> str:
    """SHA-256 of the raw document bytes.

    Modification times are never consulted: copies and checkouts rewrite
    them without changing content.
    """
    h = hashlib.sha256()
    with Path(path).open("rb") as fh:
        for block in iter(lambda: fh.read(65536), b""):
            h.update(block)
    return h.hexdigest()


class FingerprintTracker:
    """Remember the last-seen fingerprint per document and report deltas.

    Args:
        pattern: fnmatch pattern a file name must match to be tracked.
        exclude: fnmatch patterns; matching files and directories are skipped.
    """

    def __init__(self, pattern: str = "*.xml", exclude: Iterable[str] = ()) -> None:
        self.pattern = pattern
        self.exclude = list(exclude)
        self._fingerprints: dict[str, str] = {}

    def scan(self, directories: Iterable[str | Path]) -> ScanResult:
        """Enumerate *directories* and diff against the previous scan.

        The remembered map is replaced wholesale, so a document that was
        removed and later restored is reported as changed (brand new).
        """
        current = self.enumerate(directories)
        result = ScanResult()
        for path, fingerprint in current.items():
            if self._fingerprints.get(path) != fingerprint:
                result.changed.append((path, fingerprint))
        result.removed = [p for p in self._fingerprints if p not in current]
        self._fingerprints = current
        if result:
            logger.info(
                "Scan: %d changed, %d removed (%d tracked)",
                len(result.changed), len(result.removed), len(current),
            )
        return result

    def enumerate(self, directories: Iterable[str | Path]) -> dict[str, str]:
        """Return ``{path: fingerprint}`` for every tracked file under *directories*.

        Missing directories are skipped; unreadable files are left out (and
        so will be reported removed if they were tracked before).
        """
        found: dict[str, str] = {}
        for directory in directories:
            root = Path(directory)
            if not root.is_dir():
                logger.warning("Watched directory does not exist: %s", root)
                continue
            for file in self._walk(root):
                try:
                    found[str(file)] = compute_fingerprint(file)
                except OSError as exc:
                    logger.warning("Cannot read %s: %s", file, exc)
        return found

    def invalidate(self, path: str) -> None:
        """Force *path* to be reported as changed on the next scan.

        The document stays tracked, so it is still reported as removed if
        it disappears in the meantime.
        """
        if path in self._fingerprints:
            self._fingerprints[path] = _INVALIDATED

    def known(self) -> dict[str, str]:
        """Snapshot of the remembered ``{path: fingerprint}`` map."""
        return dict(self._fingerprints)

    def _walk(self, directory: Path, depth: int = 0, max_depth: int = 32) -> list[Path]:
        if depth > max_depth:
            return []
        files: list[Path] = []
        try:
            entries = sorted(directory.iterdir())
        except PermissionError:
            return []
        for entry in entries:
            if any(fnmatch.fnmatch(entry.name, pat) for pat in self.exclude):
                continue
            if entry.is_dir():
                files.extend(self._walk(entry, depth + 1, max_depth))
            elif entry.is_file() and fnmatch.fnmatch(entry.name, self.pattern):
                files.append(entry)
        return files
