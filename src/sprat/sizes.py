"""
Breakpoint planning for responsive image variants.
"""
from __future__ import annotations

import math
import typing as t
from pathlib import Path


SIZE_INCREMENT = 128
MAX_INCREMENT_SIZE = 1024
MIN_QUARTER_INCREMENT = 128

BreakpointKind = t.Literal['increment', 'intermediate', 'original']


class Breakpoint(t.NamedTuple):
    """
    A single target width in a plan, along with the bucket directory its
    variant is written into.
    """
    width: int
    bucket: str
    kind: BreakpointKind


class PlanError(ValueError):
    """
    Raised when no plan can be derived for an asset, normally because its
    width could not be read.
    """
    def __init__(self, message: str, asset: Path | str | None = None):
        self.asset = asset
        super().__init__(message)


def _round(value: float):
    # Half-up, so a gap of 1 rounds its midpoint upward like the quarters do.
    return math.floor(value + 0.5)


def _increments(original_width: int):
    limit = min(MAX_INCREMENT_SIZE, original_width)
    for width in range(SIZE_INCREMENT, limit + 1, SIZE_INCREMENT):
        yield Breakpoint(width, str(width), 'increment')


def _intermediates(original_width: int):
    if original_width <= MAX_INCREMENT_SIZE:
        return
    diff = original_width - MAX_INCREMENT_SIZE
    if _round(diff * 0.25) >= MIN_QUARTER_INCREMENT:
        for ratio, bucket in ((0.25, '25'), (0.5, '50'), (0.75, '75')):
            yield Breakpoint(MAX_INCREMENT_SIZE + _round(diff * ratio), bucket, 'intermediate')
    else:
        # A narrow gap above the top increment only warrants one extra size.
        yield Breakpoint(MAX_INCREMENT_SIZE + _round(diff * 0.5), '50', 'intermediate')


def calculate_plan(original_width: int | None, asset: Path | str | None = None) -> list[Breakpoint]:
    """
    Derive the ordered breakpoint plan for an image @original_width pixels
    wide: every multiple of 128 up to 1024, one or three intermediate sizes
    between 1024 and the original, and finally the original width itself.
    @asset is only used to name the image in errors.
    """
    if not original_width or original_width <= 0:
        raise PlanError(
            f'Could not get a usable width ({original_width!r}) for image: {asset}',
            asset
        )

    plan = list(_increments(original_width))
    plan.extend(_intermediates(original_width))
    plan.append(Breakpoint(original_width, 'original', 'original'))
    return plan
