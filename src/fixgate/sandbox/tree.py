"""Project tree walking shared by sandbox copies, syntax scans and diffs."""

from __future__ import annotations

import hashlib
import os
from collections.abc import Iterable, Iterator
from pathlib import Path


def normalise_excludes(exclude: Iterable[str]) -> frozenset[str]:
    return frozenset(e.strip().rstrip("/\\") for e in exclude if e.strip())


def iter_files(
    root: Path,
    exclude: Iterable[str],
    suffixes: Iterable[str] | None = None,
    skip: Iterable[Path] = (),
) -> Iterator[Path]:
    """Yield files under *root* in a stable order, pruning excluded directories.

    *exclude* holds directory names pruned at any depth; *skip* holds absolute
    directories (sandbox root, backup dir) pruned wherever they sit in the tree.
    """
    excluded = normalise_excludes(exclude)
    skipped = {Path(p).resolve() for p in skip}
    wanted = {s.lower() for s in suffixes} if suffixes is not None else None

    for dirpath, dirnames, filenames in os.walk(root):
        parent = Path(dirpath)
        dirnames[:] = sorted(
            d
            for d in dirnames
            if d not in excluded and not (skipped and (parent / d).resolve() in skipped)
        )
        for name in sorted(filenames):
            path = parent / name
            if wanted is not None and path.suffix.lower() not in wanted:
                continue
            if path.is_symlink() and not path.exists():
                continue
            yield path


def file_digest(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def hash_tree(root: Path, exclude: Iterable[str], skip: Iterable[Path] = ()) -> dict[str, str]:
    """Map every file's POSIX relative path to its SHA-256 digest."""
    return {
        path.relative_to(root).as_posix(): file_digest(path)
        for path in iter_files(root, exclude, skip=skip)
    }
