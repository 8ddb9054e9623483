"""
Font subsetting and WOFF2 conversion, plus the font pass which points
stylesheets at the converted fonts.
"""
from __future__ import annotations

import io
import typing as t
from pathlib import Path

from .catalog import FONT_EXTS
from .core import CollaboratorInitError, Pass
from .dependencies import Dependency, PipDependency
from .paths import change_extension
from .pretty_utils import print_with_style
from .rewrite import FontFormatRewriter, ReferenceRewriter

if t.TYPE_CHECKING:
    from fontTools.ttLib import TTFont


ALLOWED_RANGES: tuple[tuple[int, int], ...] = (
    (0x0000, 0x007F),  # Basic Latin
    (0x0080, 0x00FF),  # Latin-1 Supplement
    (0x0100, 0x024F),  # Latin Extended-A and B
    (0x1E00, 0x1EFF),  # Latin Extended Additional
    (0x0300, 0x036F),  # Combining Diacritical Marks
)
ALLOWED_SINGLES: tuple[int, ...] = (
    0x20AB,  # Dong sign
)

COMPRESSED_FORMAT = 'woff2'
WOFF2_BACKEND = PipDependency('brotli') | PipDependency('brotlicffi')


def is_allowed_code_point(code_point: int,
                          ranges: t.Iterable[tuple[int, int]] = ALLOWED_RANGES,
                          singles: t.Collection[int] = ALLOWED_SINGLES):
    """
    Whether a glyph mapped from @code_point survives subsetting.
    """
    return code_point in singles or any(start <= code_point <= end for start, end in ranges)


class InitResult(t.NamedTuple):
    ok: bool
    error: str | None = None


class FontReadiness:
    """
    The one-time initialization of the WOFF2 compression backend. Every
    conversion waits on the same instance, which performs the initialization
    on first use and hands back the cached result afterwards.
    """
    backend: Dependency = WOFF2_BACKEND

    def __init__(self):
        self._result: InitResult | None = None

    def _initialize(self):
        try:
            module = self.backend.load()
        except ImportError:
            return InitResult(False, f'No WOFF2 compression backend is installed ({self.backend.install_hint})')
        name = module.__name__
        try:
            if module.decompress(module.compress(b'wOF2')) != b'wOF2':
                return InitResult(False, f'{name} failed a compression round trip')
        except Exception as e:  # pylint: disable=broad-except
            return InitResult(False, f'{name} failed to initialize: {e}')
        return InitResult(True)

    def wait(self) -> InitResult:
        """
        Return the initialization result, initializing on the first call.
        """
        if self._result is None:
            self._result = self._initialize()
        return self._result

    def ensure(self):
        """
        Like `wait()`, but raise `CollaboratorInitError` on failure.
        """
        result = self.wait()
        if not result.ok:
            raise CollaboratorInitError(f'WOFF2 initialization failed: {result.error}')
        return result


class FontConversionError(Exception):
    """
    Exception raised when a font cannot be decoded, subset or encoded.
    """
    def __init__(self, message: str, asset: Path):
        self.asset = asset
        super().__init__(message)


class FontSubsetter:
    """
    Reduces fonts to an allow-listed set of code points and re-encodes them as
    WOFF2, using fontTools.
    """
    def __init__(self,
                 ready: FontReadiness,
                 ranges: t.Iterable[tuple[int, int]] = ALLOWED_RANGES,
                 singles: t.Collection[int] = ALLOWED_SINGLES):
        self.ready = ready
        self.ranges = tuple(ranges)
        self.singles = frozenset(singles)

    def allows(self, code_point: int):
        return is_allowed_code_point(code_point, self.ranges, self.singles)

    def decode(self, data: bytes, format_hint: str) -> TTFont:
        from fontTools.ttLib import TTFont, TTLibError

        try:
            return TTFont(io.BytesIO(data))
        except (TTLibError, OSError, ValueError) as e:
            raise ValueError(f'not a readable {format_hint} font ({e})') from e

    def filter_glyphs(self, font: TTFont, predicate: t.Callable[[int], bool]) -> list[int]:
        """
        The code points of @font's character map for which @predicate holds.
        """
        cmap = font.getBestCmap() or {}
        return sorted(code for code in cmap if predicate(code))

    def encode(self, font: TTFont, code_points: list[int], target_format: str = COMPRESSED_FORMAT) -> bytes:
        """
        Prune @font down to the glyphs for @code_points, rebuilding its
        character map to match, and serialize it as @target_format.
        """
        from fontTools import subset

        options = subset.Options()
        options.flavor = target_format
        options.hinting = True
        options.layout_features = ['*']
        options.name_IDs = ['*']
        options.notdef_outline = True
        subsetter = subset.Subsetter(options=options)
        subsetter.populate(unicodes=code_points)
        subsetter.subset(font)

        font.flavor = target_format
        buffer = io.BytesIO()
        font.save(buffer)
        return buffer.getvalue()

    def subset_bytes(self, data: bytes, format_hint: str):
        self.ready.ensure()
        font = self.decode(data, format_hint)
        try:
            return self.encode(font, self.filter_glyphs(font, self.allows))
        finally:
            font.close()

    def convert(self, path: Path) -> Path:
        """
        Write a subset WOFF2 copy of the font at @path beside it and return its
        path. WOFF2 input is already compressed and is returned as-is.
        """
        ext = path.suffix.lower()
        if ext == f'.{COMPRESSED_FORMAT}':
            return path

        format_hint = 'otf' if ext == '.otf' else 'ttf'
        try:
            encoded = self.subset_bytes(path.read_bytes(), format_hint)
        except CollaboratorInitError:
            raise
        except Exception as e:
            raise FontConversionError(f'Failed to process font {path.name}: {e}', path) from e

        output_path = change_extension(path, f'.{COMPRESSED_FORMAT}')
        try:
            output_path.write_bytes(encoded)
        except OSError:
            output_path.unlink(missing_ok=True)
            raise
        return output_path


class FontPass(Pass):
    """
    Converts every TrueType/OpenType font in the build snapshot to a subset
    WOFF2 font and updates references and `format()` hints. The original font
    is deleted only after the rewrites have run.
    """
    label = 'fonts'
    extensions = FONT_EXTS

    def __init__(self, subsetter: FontSubsetter | None = None):
        self.subsetter = subsetter

    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('fonttools', check_name='fontTools'),
            WOFF2_BACKEND,
        }

    def setup(self):
        if self.subsetter is None:
            self.subsetter = FontSubsetter(FontReadiness())
        self.subsetter.ready.ensure()
        build_dir = self.context['build_dir']
        self.reference_rewriter = ReferenceRewriter(build_dir)
        self.format_rewriter = FontFormatRewriter(build_dir, COMPRESSED_FORMAT)

    def process(self, path: Path):
        new_path = self.subsetter.convert(path)
        if new_path == path:
            return []

        self.log_rewrites(self.reference_rewriter.rewrite(path, new_path), 'Updated references')
        self.log_rewrites(self.format_rewriter.rewrite(new_path), 'Updated CSS font formats')
        path.unlink()

        print_with_style(
            f'✓ {self.context.reference(path)} → {self.context.reference(new_path)}',
            style='green'
        )
        return [new_path]
