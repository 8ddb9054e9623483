"""
The default ordering of passes and a one-call entry point.
"""
from __future__ import annotations

from pathlib import Path

from .core import Context, InputBuildSettings, Pass, resolve_settings
from .fonts import FontPass
from .images import ImagePass
from .minify import MinifyPass


def default_passes() -> list[Pass]:
    """
    Images first, then fonts, then minification: both earlier passes edit
    shared text, and minification must see their final references.
    """
    return [ImagePass(), FontPass(), MinifyPass()]


def optimize(settings: InputBuildSettings | None = None, passes: list[Pass] | None = None) -> list[Path]:
    """
    Run a complete optimization with @settings (missing keys fall back to
    defaults) and return every processed path.
    """
    context = Context(resolve_settings(settings), default_passes() if passes is None else passes)
    return context.run()
