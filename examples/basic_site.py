from pathlib import Path

from sprat import FontPass, ImagePass, InputBuildSettings, MinifyPass


# Optional, and can be overridden with CLI arguments.
SETTINGS = InputBuildSettings(
    source_dir=Path(__file__).parent / 'basic_site',
    build_dir=Path('output/basic_site'),
    image_format='webp',
    image_quality=75,
)
# Same order as the defaults: minification must run last.
PASSES = [
    ImagePass(),
    FontPass(),
    MinifyPass(),
]
