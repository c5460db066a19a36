"""Locate feature files under resource roots and derive their logical names."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Callable, Iterable, Sequence

from .errors import FeatureForksError
from .models import FeatureFile

logger = logging.getLogger(__name__)

FEATURE_EXTENSION = ".feature"
NAME_DELIMITER = "."

# Enumerates every file below a root; injectable so tests need no disk layout
FileWalker = Callable[[Path], Iterable[Path]]


def walk_files(root: Path) -> Iterable[Path]:
    """Yield every regular file below ``root``. Missing roots yield nothing."""
    if not root.is_dir():
        return
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            yield Path(dirpath) / filename


def include_pattern(feature_root: str) -> str:
    """Turn a feature root like ``features`` into ``features/**/*.feature``."""
    feature_root = feature_root.strip().replace("\\", "/").strip("/")
    if not feature_root:
        return f"**/*{FEATURE_EXTENSION}"
    return f"{feature_root}/**/*{FEATURE_EXTENSION}"


def _match_segments(pattern: Sequence[str], parts: Sequence[str]) -> bool:
    """Match path segments against glob segments. ``**`` spans zero or more segments."""
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_segments(rest, parts[i:]) for i in range(len(parts) + 1))
    if not parts:
        return False
    # fnmatch per segment, so ``*`` and ``?`` never cross a directory boundary
    return fnmatch.fnmatchcase(parts[0], head) and _match_segments(rest, parts[1:])


def matches_include(relative: str, pattern: str) -> bool:
    """Whether a slash-separated relative path matches an include glob."""
    return _match_segments(pattern.split("/"), relative.split("/"))


def _is_relative_to(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def _strip_extension(filename: str) -> str:
    if filename.endswith(FEATURE_EXTENSION):
        return filename[: -len(FEATURE_EXTENSION)]
    return filename


def feature_name_from_file(path: Path, resource_roots: Sequence[Path]) -> str:
    """Derive the dot-joined logical name of a feature file.

    The deepest resource root containing the file wins. Without a containing
    root the bare file name is used. The ``.feature`` suffix is dropped in
    both cases.
    """
    path = Path(path).absolute()
    containing = [Path(r).absolute() for r in resource_roots if _is_relative_to(path, Path(r).absolute())]
    if not containing:
        return _strip_extension(path.name)

    root = max(containing, key=lambda r: len(r.parts))
    parts = list(path.relative_to(root).parts)
    parts[-1] = _strip_extension(parts[-1])
    return NAME_DELIMITER.join(parts)


def find_features(
    resource_roots: Sequence[Path],
    feature_roots: Sequence[str],
    walk: FileWalker = walk_files,
) -> list[FeatureFile]:
    """Return every feature file matched by the include patterns, sorted by path.

    Raises:
        FeatureForksError: two files derive the same logical name, which
            would make them share output files
    """
    patterns = [include_pattern(fr) for fr in feature_roots]
    roots = [Path(r).absolute() for r in resource_roots]
    found: dict[Path, FeatureFile] = {}

    for root in roots:
        for candidate in walk(root):
            candidate = Path(candidate).absolute()
            if candidate in found or not _is_relative_to(candidate, root):
                continue
            relative = candidate.relative_to(root).as_posix()
            if any(matches_include(relative, p) for p in patterns):
                found[candidate] = FeatureFile(
                    path=candidate,
                    name=feature_name_from_file(candidate, roots),
                )

    features = sorted(found.values(), key=lambda f: str(f.path))

    by_name: dict[str, list[Path]] = {}
    for feature in features:
        by_name.setdefault(feature.name, []).append(feature.path)
    clashes = {name: paths for name, paths in by_name.items() if len(paths) > 1}
    if clashes:
        details = "; ".join(
            f"{name}: {', '.join(str(p) for p in paths)}" for name, paths in sorted(clashes.items())
        )
        raise FeatureForksError(f"Feature files share a logical name: {details}")

    logger.debug("Discovered %d feature file(s) under %d root(s)", len(features), len(roots))
    return features
