"""
Minification of the script and style text left in the build snapshot once
every reference in it is final.
"""
from __future__ import annotations

import typing as t
from pathlib import Path

from .catalog import SCRIPT_EXTS, STYLE_EXTS, has_extension
from .core import Pass
from .dependencies import PipDependency
from .pretty_utils import print_with_style


Minifier = t.Callable[[str, str], str]


class MinifyError(Exception):
    """
    Exception raised when a minifier rejects a file.
    """


def minify_script(code: str, filename: str) -> str:
    """
    Minify JavaScript using rjsmin.
    """
    import rjsmin
    try:
        return rjsmin.jsmin(code)
    except Exception as e:
        raise MinifyError(f'JS minification failed for {filename}: {e}') from e


def minify_style(code: str, filename: str) -> str:
    """
    Minify CSS using lightningcss.
    """
    import lightningcss
    try:
        return lightningcss.process_stylesheet(
            code,
            filename=filename,
            error_recovery=False,
            browsers_list=['defaults'],
            minify=True
        )
    except Exception as e:
        raise MinifyError(f'CSS minification failed for {filename}: {e}') from e


class MinifyPass(Pass):
    """
    Minifies every script, then every stylesheet, in place.
    """
    label = 'scripts and stylesheets'
    extensions = SCRIPT_EXTS | STYLE_EXTS
    encoding = 'utf-8'

    def __init__(self,
                 script_minifier: Minifier | None = None,
                 style_minifier: Minifier | None = None):
        self.script_minifier = script_minifier or minify_script
        self.style_minifier = style_minifier or minify_style

    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('rjsmin'),
            PipDependency('lightningcss'),
        }

    def find_assets(self):
        scripts = self.context.find_files(SCRIPT_EXTS)
        styles = self.context.find_files(STYLE_EXTS)
        print_with_style(f'Minifying {len(scripts)} JS files and {len(styles)} CSS files...')
        return scripts + styles

    def process(self, path: Path):
        minifier = self.script_minifier if has_extension(path, SCRIPT_EXTS) else self.style_minifier
        original = path.read_text(self.encoding)
        minified = minifier(original, str(path))
        path.write_text(minified, self.encoding)
        old_size = len(original.encode(self.encoding))
        new_size = len(minified.encode(self.encoding))
        print_with_style(
            f'✓ Minified {self.context.reference(path)} ({old_size} → {new_size} bytes)',
            style='green'
        )
        return [path]
