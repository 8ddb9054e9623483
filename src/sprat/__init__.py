"""
sprat is a post-build optimizer for static sites: responsive image variants,
subset WOFF2 fonts, minified scripts and styles, and every reference to them
rewritten to match.
"""
from .core import (
    BuildSettings, CollaboratorInitError, Context, Diagnostic, InputBuildSettings, Pass,
    PassUnavailableException, ProcessedFileRecord, SetupError,
)
from .fonts import FontPass, FontReadiness, FontSubsetter
from .images import ImageCodec, ImagePass, PillowCodec, VariantDescriptor, VariantMaterializer
from .minify import MinifyPass
from .pipeline import default_passes, optimize
from .rewrite import FontFormatRewriter, ReferenceRewriter, SrcsetRewriter
from .sizes import Breakpoint, calculate_plan
