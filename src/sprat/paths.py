"""
Conversion between filesystem paths inside the build snapshot and the
portable, slash-normalized reference strings used to find them in text.
"""
from __future__ import annotations

import os
import posixpath
import re
from pathlib import Path


_SCHEME_RE = re.compile(r'^[a-zA-Z][a-zA-Z0-9+.-]*:')
_SUFFIX_RE = re.compile(r'\.[^./]+$')


def normalize_separators(reference: str):
    """
    Replace platform path separators with forward slashes.
    """
    return reference.replace('\\', '/')


def to_reference(root: Path, path: Path):
    """
    Convert @path, which must be inside @root, into a root-relative portable
    reference such as `images/photo.jpg`.
    """
    return normalize_separators(path.relative_to(root).as_posix())


def relative_reference(from_file: Path, target: Path):
    """
    The portable reference a text file at @from_file must use to point at
    @target.
    """
    return normalize_separators(os.path.relpath(target, from_file.parent))


def strip_extension(reference: str):
    """
    Remove the final extension of a reference, if there is one.
    """
    return _SUFFIX_RE.sub('', reference)


def change_extension(path: Path, ext: str):
    """
    Swap the final extension of @path for @ext (which includes the dot).
    """
    return path.with_suffix(ext)


def is_external(value: str):
    """
    Whether a URL-ish attribute value points outside the site, e.g.
    `https://...`, `data:...` or a protocol-relative `//host/...`.
    """
    return value.startswith('//') or bool(_SCHEME_RE.match(value))


def resolve_reference(root: Path, from_file: Path, value: str) -> str | None:
    """
    Resolve an attribute or `url()` value found in @from_file into a portable
    reference relative to @root. Absolute values (`/img/a.png`) are taken as
    root-relative. Returns None for external URLs and for values escaping
    @root.
    """
    value = normalize_separators(value.strip())
    value = value.split('#', 1)[0].split('?', 1)[0]
    if not value or is_external(value):
        return None
    if value.startswith('/'):
        joined = value.lstrip('/')
    else:
        base = to_reference(root, from_file.parent) if from_file.parent != root else ''
        joined = posixpath.join(base, value)
    resolved = posixpath.normpath(joined)
    if resolved == '..' or resolved.startswith('../'):
        return None
    return resolved
