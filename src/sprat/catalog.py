"""
Recursive, extension-filtered discovery of assets inside a build snapshot.
"""
from __future__ import annotations

import typing as t
from pathlib import Path


IMAGE_EXTS = frozenset({'.jpg', '.jpeg', '.png'})
FONT_EXTS = frozenset({'.ttf', '.otf', '.woff2'})
SCRIPT_EXTS = frozenset({'.js'})
STYLE_EXTS = frozenset({'.css'})
MARKUP_EXTS = frozenset({'.html'})
TEXT_EXTS = MARKUP_EXTS | STYLE_EXTS | SCRIPT_EXTS

SKIPPED_DIRS = frozenset({'node_modules'})


def should_skip(name: str):
    """
    Whether a directory entry named @name is excluded from scans. Hidden
    entries and dependency directories are never assets of the site.
    """
    return name.startswith('.') or name in SKIPPED_DIRS


def has_extension(path: Path, extensions: t.Collection[str]):
    """
    Case-insensitive check of @path's final suffix against @extensions.
    """
    return path.suffix.lower() in extensions


def find_files(root: Path, extensions: t.Collection[str]) -> list[Path]:
    """
    Recursively collect every file under @root whose extension is in
    @extensions. Results are sorted per directory so that runs over the same
    tree visit assets in the same order.
    """
    found: list[Path] = []
    for candidate in sorted(root.iterdir()):
        if should_skip(candidate.name):
            continue
        if candidate.is_dir():
            found.extend(find_files(candidate, extensions))
        elif has_extension(candidate, extensions):
            found.append(candidate)
    return found
