"""
Responsive image variants: the codec collaborator, materialization of a
breakpoint plan into files, and the image pass which rewrites markup to use
them.
"""
from __future__ import annotations

import abc
import io
import typing as t
from pathlib import Path

from .catalog import IMAGE_EXTS
from .core import CollaboratorInitError, Pass
from .dependencies import PipDependency
from .pretty_utils import print_with_style
from .rewrite import ReferenceRewriter, SrcsetRewriter
from .sizes import Breakpoint, BreakpointKind, calculate_plan


class VariantDescriptor(t.NamedTuple):
    """
    A single generated variant of an image.
    """
    path: Path
    width: int
    bucket: str
    kind: BreakpointKind


class MaterializeError(Exception):
    """
    Exception raised when a variant of an image could not be generated.
    """
    def __init__(self, message: str, asset: Path):
        self.asset = asset
        super().__init__(message)


class ImageCodec(abc.ABC):
    """
    Abstract base class for the codec which reads and re-encodes rasters.
    """
    @property
    @abc.abstractmethod
    def extension(self) -> str:
        """
        File extension, including the dot, of encoded output.
        """

    def check(self):
        """
        Verify the codec can run, raising `CollaboratorInitError` if not.
        """

    @abc.abstractmethod
    def read_width(self, data: bytes) -> int:
        ...

    @abc.abstractmethod
    def resize_and_encode(self, data: bytes, width: int) -> bytes:
        """
        Resize the image in @data to @width pixels wide, preserving its aspect
        ratio, and encode it.
        """


class PillowCodec(ImageCodec):
    """
    An ImageCodec using Pillow, writing AVIF by default.
    """
    def __init__(self, image_format: str = 'avif', quality: int = 60, effort: int = 6):
        """
        @effort follows the 0-9 scale where higher values spend more time for
        smaller files; it is translated to each format's own knob.
        """
        self.image_format = image_format.upper()
        self.quality = quality
        self.effort = effort

    @property
    def extension(self):
        return '.' + self.image_format.lower()

    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('Pillow', check_name='PIL'),
        }

    def save_options(self) -> dict[str, t.Any]:
        if self.image_format == 'AVIF':
            return {'quality': self.quality, 'speed': max(0, min(10, 9 - self.effort))}
        if self.image_format == 'WEBP':
            return {'quality': self.quality, 'method': max(0, min(6, self.effort))}
        if self.image_format == 'JPEG':
            return {'quality': self.quality, 'optimize': True}
        if self.image_format == 'PNG':
            return {'optimize': True, 'compress_level': max(0, min(9, self.effort))}
        return {}

    def check(self):
        from PIL import Image

        Image.init()
        if self.image_format not in Image.SAVE:
            raise CollaboratorInitError(
                f'This Pillow build cannot write {self.image_format} images'
            )

    def read_width(self, data: bytes):
        from PIL import Image

        with Image.open(io.BytesIO(data)) as img:
            return img.width

    def resize_and_encode(self, data: bytes, width: int):
        from PIL import Image

        with Image.open(io.BytesIO(data)) as img:
            height = max(1, round(img.height * width / img.width))
            if (width, height) == img.size:
                resized = img.copy()
            else:
                resized = img.resize((width, height), Image.Resampling.LANCZOS)

        if self.image_format != 'PNG' and resized.mode not in ('RGB', 'RGBA'):
            has_alpha = 'A' in resized.mode or 'transparency' in resized.info
            resized = resized.convert('RGBA' if has_alpha else 'RGB')
        if self.image_format == 'JPEG' and resized.mode == 'RGBA':
            resized = resized.convert('RGB')

        buffer = io.BytesIO()
        resized.save(buffer, format=self.image_format, **self.save_options())
        return buffer.getvalue()


def variant_path(asset: Path, breakpoint: Breakpoint, ext: str):
    """
    Where the variant of @asset for @breakpoint lives:
    `<dir>/<bucket>/<base>-<width>w<ext>`, or `<dir>/original/<base><ext>` for
    the full-size variant.
    """
    if breakpoint.kind == 'original':
        name = f'{asset.stem}{ext}'
    else:
        name = f'{asset.stem}-{breakpoint.width}w{ext}'
    return asset.parent / breakpoint.bucket / name


class VariantMaterializer:
    """
    Drives an ImageCodec to write one file per breakpoint of an image's plan.
    """
    def __init__(self, codec: ImageCodec):
        self.codec = codec

    def materialize(self, asset: Path) -> list[VariantDescriptor]:
        """
        Generate every variant of @asset. If any variant fails, those already
        written are removed and `MaterializeError` is raised; @asset itself is
        never touched.
        """
        data = asset.read_bytes()
        plan = calculate_plan(self.codec.read_width(data), asset)
        print_with_style(
            f'Generating {len(plan)} sizes for {asset.stem}: {", ".join(str(b.width) for b in plan)}'
        )

        written: list[VariantDescriptor] = []
        for breakpoint in plan:
            output_path = variant_path(asset, breakpoint, self.codec.extension)
            try:
                encoded = self.codec.resize_and_encode(data, breakpoint.width)
                output_path.parent.mkdir(parents=True, exist_ok=True)
                output_path.write_bytes(encoded)
            except Exception as e:
                self.discard(written)
                raise MaterializeError(
                    f'Failed to generate {breakpoint.width}w variant of {asset.name}: {e}',
                    asset
                ) from e
            written.append(VariantDescriptor(output_path, breakpoint.width, breakpoint.bucket, breakpoint.kind))
        return written

    def discard(self, variants: list[VariantDescriptor]):
        for variant in variants:
            variant.path.unlink(missing_ok=True)


class ImagePass(Pass):
    """
    Replaces every raster in the build snapshot with a set of resized,
    re-encoded variants and points markup at them. The original raster is
    deleted only once its variants exist and references have been rewritten.
    """
    label = 'images'
    extensions = IMAGE_EXTS

    def __init__(self, codec: ImageCodec | None = None):
        self.codec = codec

    @classmethod
    def get_dependencies(cls):
        return PillowCodec.get_dependencies()

    def setup(self):
        if self.codec is None:
            self.codec = PillowCodec(
                self.context['image_format'],
                self.context['image_quality'],
                self.context['image_effort'],
            )
        self.codec.check()
        build_dir = self.context['build_dir']
        self.materializer = VariantMaterializer(self.codec)
        self.srcset_rewriter = SrcsetRewriter(build_dir)
        self.reference_rewriter = ReferenceRewriter(build_dir)

    def process(self, path: Path):
        variants = self.materializer.materialize(path)
        original = next(v for v in variants if v.kind == 'original')

        self.log_rewrites(self.srcset_rewriter.rewrite(path, variants), 'Updated/added srcset')
        self.log_rewrites(self.reference_rewriter.rewrite(path, original.path), 'Updated references')
        path.unlink()

        print_with_style(
            f'✓ Processed {self.context.reference(path)} -> {len(variants)} variants',
            style='green'
        )
        return [v.path for v in variants]
