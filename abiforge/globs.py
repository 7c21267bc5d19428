"""Glob patterns — matching, watch roots, and filesystem scans.

Patterns use ``fnmatch`` rules, so ``*`` also crosses ``/``. A ``**/``
segment may match no directory at all, and a leading ``!`` marks an
exclusion::

    /project/artifacts/**/*.json
    !/project/artifacts/**/build-info/**
"""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path

_GLOB_CHARS = set("*?[")


def _norm(path: str | Path) -> str:
    return Path(path).as_posix()


def _variants(pattern: str) -> list[str]:
    """Expand each ``**/`` into itself and into nothing."""
    head, sep, tail = pattern.partition("**/")
    if not sep:
        return [pattern]
    rest = _variants(tail)
    return [head + sep + r for r in rest] + [head + r for r in rest]


def match_glob(path: str | Path, pattern: str) -> bool:
    """Return True if *path* matches the glob *pattern*."""
    p = _norm(path)
    return any(fnmatch.fnmatch(p, v) for v in _variants(_norm(pattern)))


def split_patterns(patterns: list[str]) -> tuple[list[str], list[str]]:
    """Split *patterns* into (include, exclude); ``!`` marks an exclusion."""
    include: list[str] = []
    exclude: list[str] = []
    for p in patterns:
        if p.startswith("!"):
            exclude.append(p[1:])
        else:
            include.append(p)
    return include, exclude


def has_magic(pattern: str) -> bool:
    return any(c in _GLOB_CHARS for c in pattern)


def pattern_root(pattern: str) -> str:
    """Return the longest leading directory of *pattern* without glob characters."""
    parts = _norm(pattern).split("/")
    fixed: list[str] = []
    for part in parts:
        if has_magic(part):
            break
        fixed.append(part)
    else:
        # No glob at all: the pattern names a file or directory itself.
        return "/".join(fixed) or "/"
    return "/".join(fixed) or ("/" if pattern.startswith("/") else ".")


def watch_roots(patterns: list[str]) -> list[str]:
    """Distinct directories to observe for *patterns*, nested ones folded in."""
    include, _ = split_patterns(patterns)
    roots = sorted({pattern_root(p) for p in include})
    folded: list[str] = []
    for root in roots:
        if any(root == r or root.startswith(r.rstrip("/") + "/") for r in folded):
            continue
        folded.append(root)
    return folded


def matches(path: str | Path, patterns: list[str]) -> bool:
    """True if *path* matches an include pattern and no exclude pattern.

    An include pattern without glob characters matches the path itself and
    anything beneath it.
    """
    p = _norm(path)
    include, exclude = split_patterns(patterns)

    def _hit(pattern: str) -> bool:
        if not has_magic(pattern):
            base = _norm(pattern).rstrip("/")
            return p == base or p.startswith(base + "/")
        return match_glob(p, pattern)

    if not any(_hit(x) for x in include):
        return False
    return not any(_hit(x) for x in exclude)


def scan(patterns: list[str]) -> list[str]:
    """Return every existing file matching *patterns*, sorted."""
    found: set[str] = set()
    for root in watch_roots(patterns):
        if os.path.isfile(root):
            if matches(root, patterns):
                found.add(_norm(root))
            continue
        if not os.path.isdir(root):
            continue
        for dirpath, _dirnames, filenames in os.walk(root):
            for fname in filenames:
                fpath = _norm(os.path.join(dirpath, fname))
                if matches(fpath, patterns):
                    found.add(fpath)
    return sorted(found)
