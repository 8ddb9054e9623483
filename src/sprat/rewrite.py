"""
Targeted, idempotent rewriting of cross-file references in markup, style and
script text after an asset has been replaced.
"""
from __future__ import annotations

import abc
import posixpath
import re
import typing as t
from pathlib import Path

from .catalog import MARKUP_EXTS, STYLE_EXTS, TEXT_EXTS, find_files
from .paths import (
    is_external, normalize_separators, relative_reference, resolve_reference,
    strip_extension, to_reference,
)

if t.TYPE_CHECKING:
    from collections.abc import Sequence
    from .images import VariantDescriptor


RewriteState = t.Literal['unseen', 'scanning', 'rewritten', 'unchanged']

LEGACY_IMAGE_EXTS = ('.jpg', '.jpeg', '.png', '.webp', '.avif')
LEGACY_FONT_FORMATS = frozenset({'truetype', 'opentype', 'ttf', 'otf'})

IMG_TAG_RE = re.compile(r'<img\b(?:[^>"\']|"[^"]*"|\'[^\']*\')*>', re.IGNORECASE)
FONT_FACE_RE = re.compile(r'@font-face\s*\{[^}]*\}', re.IGNORECASE)
FONT_SRC_RE = re.compile(
    r'(?P<url>url\(\s*(?P<q>["\']?)(?P<ref>[^"\')]*)(?P=q)\s*\))'
    r'(?P<fmt>\s*format\(\s*(?P<fq>["\']?)(?P<token>[^"\')]*)(?P=fq)\s*\))?',
    re.IGNORECASE
)
# One URL-ish run of text: an attribute value, a url() argument, a word of a
# srcset or the contents of a string literal.
REFERENCE_TOKEN_RE = re.compile(r'[^\s"\'`()<>,;=]+')


def _attr_re(name: str):
    return re.compile(
        r'\s' + name + r'\s*=\s*(?:"(?P<dq>[^"]*)"|\'(?P<sq>[^\']*)\'|(?P<uq>[^\s"\'>]+))',
        re.IGNORECASE
    )


SRC_ATTR_RE = _attr_re('src')
SRCSET_ATTR_RE = _attr_re('srcset')


def _attr_value(match: re.Match[str]):
    for group in ('dq', 'sq', 'uq'):
        if (value := match.group(group)) is not None:
            return value
    return ''


def _set_attr_value(tag: str, match: re.Match[str], value: str):
    """
    Replace the value of the attribute matched by @match, keeping its quote
    style. Unquoted values come back double-quoted.
    """
    group = 'uq' if match.group('uq') is not None else ('sq' if match.group('sq') is not None else 'dq')
    if group == 'uq':
        start, end = match.span('uq')
        return f'{tag[:start]}"{value}"{tag[end:]}'
    start, end = match.span(group)
    return tag[:start] + value + tag[end:]


class RewriteReport:
    """
    Outcome of one rewrite over the text files of a build snapshot.
    """
    def __init__(self):
        self.states: dict[Path, RewriteState] = {}
        self.errors: list[tuple[Path, Exception]] = []

    @property
    def rewritten(self):
        return [p for p, state in self.states.items() if state == 'rewritten']

    def state(self, path: Path) -> RewriteState:
        return self.states.get(path, 'unseen')


class TextRewriter(abc.ABC):
    """
    A base class for rewriters which read every text file of some kind in the
    build snapshot and write back only those they changed.
    """
    encoding = 'utf-8'
    # Empty newline disables translation, so line endings survive a rewrite.
    newline = ''
    extensions: frozenset[str] = TEXT_EXTS

    def __init__(self, build_dir: Path):
        self.build_dir = build_dir

    def read(self, path: Path):
        with path.open(encoding=self.encoding, newline=self.newline) as file:
            return file.read()

    def write(self, path: Path, content: str):
        with path.open('w', encoding=self.encoding, newline=self.newline) as file:
            file.write(content)

    @abc.abstractmethod
    def transform(self, path: Path, content: str) -> str:
        """
        Return the rewritten @content of the file at @path.
        """

    def rewrite_file(self, path: Path, report: RewriteReport) -> RewriteState:
        report.states[path] = 'scanning'
        content = self.read(path)
        updated = self.transform(path, content)
        if updated != content:
            self.write(path, updated)
            report.states[path] = 'rewritten'
        else:
            report.states[path] = 'unchanged'
        return report.states[path]

    def run(self, files: Sequence[Path] | None = None) -> RewriteReport:
        """
        Apply `transform()` to every file in @files, or to every matching file
        in the build snapshot. Unreadable or unwritable files are recorded on
        the report and skipped.
        """
        report = RewriteReport()
        if files is None:
            files = find_files(self.build_dir, self.extensions)
        for path in files:
            try:
                self.rewrite_file(path, report)
            except (OSError, UnicodeError) as e:
                report.states.pop(path, None)
                report.errors.append((path, e))
        return report


class SrcsetRewriter(TextRewriter):
    """
    Rewrites `<img>` elements referencing an original raster so that `src`
    points at its full-size variant and `srcset` lists every smaller one.
    """
    extensions = MARKUP_EXTS

    def __init__(self, build_dir: Path):
        super().__init__(build_dir)
        self.asset: Path | None = None
        self.variants: Sequence[VariantDescriptor] = ()
        self.candidates: list[str] = []
        self.base_names: set[str] = set()

    def candidate_references(self, asset: Path):
        """
        Every portable reference under which @asset may still appear in
        markup: its own path and its full-size variant's path, under any
        legacy image extension. Longest references come first so that the
        most specific one wins.
        """
        ref = to_reference(self.build_dir, asset)
        stems = {strip_extension(ref), posixpath.join(posixpath.dirname(ref), 'original', asset.stem)}
        return sorted({stem + ext for stem in stems for ext in LEGACY_IMAGE_EXTS}, key=len, reverse=True)

    def refers_to_asset(self, path: Path, value: str):
        """
        Whether a `src` @value found in the file at @path refers to the asset
        currently being rewritten.
        """
        value = normalize_separators(value.strip())
        if not value or is_external(value):
            return False
        bare = value.split('#', 1)[0].split('?', 1)[0]
        stripped = bare.lstrip('/')
        resolved = resolve_reference(self.build_dir, path, bare)

        if any(candidate in (resolved, stripped) for candidate in self.candidates):
            return True

        loose = (
            any(stripped.endswith('/' + candidate) for candidate in self.candidates)
            or posixpath.basename(stripped) in self.base_names
        )
        # A suffix or bare name match must not steal an element pointing at a
        # different file that still exists.
        return loose and not (resolved and (self.build_dir / resolved).is_file())

    def srcset_value(self, path: Path):
        smaller = sorted(
            (v for v in self.variants if v.kind != 'original'),
            key=lambda v: v.width
        )
        return ', '.join(f'{relative_reference(path, v.path)} {v.width}w' for v in smaller)

    def rewrite_tag(self, path: Path, tag: str):
        """
        Point a single matching `<img>` tag at the new variants. Returns the
        tag unchanged when it already is.
        """
        original = next(v for v in self.variants if v.kind == 'original')
        src_match = SRC_ATTR_RE.search(tag)
        if not src_match:
            return tag
        tag = _set_attr_value(tag, src_match, relative_reference(path, original.path))
        # Positions moved; find src again to know where srcset goes.
        src_end = SRC_ATTR_RE.search(tag).end()

        srcset = self.srcset_value(path)
        srcset_match = SRCSET_ATTR_RE.search(tag)
        if srcset_match and srcset:
            if _attr_value(srcset_match) != srcset:
                tag = _set_attr_value(tag, srcset_match, srcset)
        elif srcset_match:
            tag = tag[:srcset_match.start()] + tag[srcset_match.end():]
        elif srcset:
            tag = f'{tag[:src_end]} srcset="{srcset}"{tag[src_end:]}'
        return tag

    def transform(self, path: Path, content: str):
        def substitute(match: re.Match[str]):
            tag = match.group(0)
            src_match = SRC_ATTR_RE.search(tag)
            if not src_match or not self.refers_to_asset(path, _attr_value(src_match)):
                return tag
            return self.rewrite_tag(path, tag)

        return IMG_TAG_RE.sub(substitute, content)

    def rewrite(self, asset: Path, variants: Sequence[VariantDescriptor], files: Sequence[Path] | None = None):
        """
        Rewrite every markup file in the build snapshot which references
        @asset to use @variants.
        """
        if not any(v.kind == 'original' for v in variants):
            raise ValueError(f'No original-size variant given for {asset}')
        self.asset = asset
        self.variants = variants
        self.candidates = self.candidate_references(asset)
        self.base_names = {asset.stem + ext for ext in LEGACY_IMAGE_EXTS}
        return self.run(files)


class ReferenceRewriter(TextRewriter):
    """
    Substitution of one portable reference for another across every markup,
    style and script file. Only whole references to the old file are
    replaced: `banana.png` is left alone when `a.png` moves.
    """
    extensions = TEXT_EXTS

    def __init__(self, build_dir: Path):
        super().__init__(build_dir)
        self.old_ref = ''
        self.old_name = ''
        self.new_path: Path | None = None
        self.new_ref = ''

    def refers_to_old(self, path: Path, bare: str):
        resolved = resolve_reference(self.build_dir, path, bare)
        if resolved == self.old_ref:
            return True
        # Site-relative spellings in nested files, unless they name another
        # existing file.
        return (
            bare.lstrip('/') == self.old_ref
            and not (resolved and (self.build_dir / resolved).is_file())
        )

    def replacement(self, path: Path, token: str):
        """
        The new spelling of @token found in the file at @path, or None if it
        does not refer to the old file.
        """
        value = normalize_separators(token)
        cut = min((i for i in (value.find('?'), value.find('#')) if i >= 0), default=len(value))
        bare, suffix = value[:cut], value[cut:]
        if not bare or is_external(bare) or not self.refers_to_old(path, bare):
            return None
        if bare == self.old_ref or bare.endswith('/' + self.old_ref):
            return bare[:-len(self.old_ref)] + self.new_ref + suffix
        return relative_reference(path, self.new_path) + suffix

    def transform(self, path: Path, content: str):
        if self.old_name not in content:
            return content

        def substitute(match: re.Match[str]):
            token = match.group(0)
            if self.old_name not in token:
                return token
            replacement = self.replacement(path, token)
            return token if replacement is None else replacement

        return REFERENCE_TOKEN_RE.sub(substitute, content)

    def rewrite(self, old_path: Path, new_path: Path, files: Sequence[Path] | None = None):
        """
        Replace every reference to @old_path with one to @new_path.
        """
        self.old_ref = to_reference(self.build_dir, old_path)
        self.old_name = old_path.name
        self.new_path = new_path
        self.new_ref = to_reference(self.build_dir, new_path)
        return self.run(files)


class FontFormatRewriter(TextRewriter):
    """
    Normalizes `format()` hints in the `@font-face` blocks of stylesheets
    which point at a converted font. Only the `src` entries naming the new
    font are touched.
    """
    extensions = STYLE_EXTS

    def __init__(self, build_dir: Path, font_format: str = 'woff2'):
        super().__init__(build_dir)
        self.font_format = font_format
        self.new_ref = ''

    def points_at_font(self, path: Path, value: str):
        value = normalize_separators(value.strip())
        return (
            value == self.new_ref
            or value.endswith('/' + self.new_ref)
            or resolve_reference(self.build_dir, path, value) == self.new_ref
        )

    def normalize_block(self, path: Path, block: str):
        format_hint = f' format("{self.font_format}")'

        def substitute(match: re.Match[str]):
            if not self.points_at_font(path, match.group('ref')):
                return match.group(0)
            token = match.group('token')
            if token is None:
                return match.group('url') + format_hint
            if token.lower() in LEGACY_FONT_FORMATS:
                return match.group('url') + format_hint
            return match.group(0)

        return FONT_SRC_RE.sub(substitute, block)

    def transform(self, path: Path, content: str):
        return FONT_FACE_RE.sub(lambda m: self.normalize_block(path, m.group(0)), content)

    def rewrite(self, new_path: Path, files: Sequence[Path] | None = None):
        """
        Normalize format hints for every `@font-face` source naming
        @new_path.
        """
        self.new_ref = to_reference(self.build_dir, new_path)
        return self.run(files)
