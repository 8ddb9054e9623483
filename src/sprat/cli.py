"""
Command line entry point for sprat.
"""
from __future__ import annotations

import argparse
import runpy
import sys
import typing as t
from pathlib import Path

from .core import Context, InputBuildSettings, Pass, PassUnavailableException, SetupError, resolve_settings
from .pipeline import default_passes
from .pretty_utils import print_with_style


def load_config(path: Path) -> tuple[InputBuildSettings | None, list[Pass] | None]:
    """
    Run a Python config file and pull its `SETTINGS` and `PASSES` out.
    """
    namespace = runpy.run_path(str(path))
    return namespace.get('SETTINGS'), namespace.get('PASSES')


def parse_args(arguments: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog='sprat',
        description='Optimize the images, fonts, scripts and styles of a built static site.'
    )
    parser.add_argument('config_file',
                        nargs='?',
                        help='file path to a config file defining SETTINGS and optionally PASSES',
                        type=Path,
                        default=None)
    parser.add_argument('-i', '--input',
                        help='source directory with the built site (default: src)',
                        type=Path,
                        dest='source_dir')
    parser.add_argument('-o', '--output',
                        help='directory to write the optimized site to; replaced on every run (default: dist)',
                        type=Path,
                        dest='build_dir')
    parser.add_argument('--image-format',
                        help='format for responsive image variants (default: avif)',
                        dest='image_format')
    parser.add_argument('--quality',
                        help='image encoder quality (default: 60)',
                        type=int,
                        dest='image_quality')
    parser.add_argument('--effort',
                        help='image encoder effort, 0-9 (default: 6)',
                        type=int,
                        dest='image_effort')
    parser.add_argument('--manifest',
                        help='path to write a JSON report of the run to',
                        type=Path)
    parser.add_argument('--audit-passes',
                        help=('show information about available, unavailable, '
                              'and used passes, instead of optimizing'),
                        action='store_true')
    return parser.parse_args(arguments)


def merge_settings(base: InputBuildSettings | None, args: argparse.Namespace) -> InputBuildSettings:
    """
    Overlay explicitly given command line options on config file settings.
    """
    merged: dict[str, t.Any] = dict(base or {})
    for key in ('source_dir', 'build_dir', 'image_format', 'image_quality', 'image_effort', 'manifest'):
        if (value := getattr(args, key)) is not None:
            merged[key] = value
    return t.cast(InputBuildSettings, merged)


def pprint_pass(opt_pass: t.Type[Pass]):
    """
    Prettily display dependency information for the given Pass class.
    """
    missing = [str(d) for d in opt_pass.get_dependencies() if not d.satisfied]
    if missing:
        text = ', '.join(missing)
        print_with_style(f'✗ {opt_pass.__name__} (missing: {text})', style='red')
    else:
        print_with_style(f'✓ {opt_pass.__name__}', style='green')


def pprint_missing_deps(opt_pass: Pass):
    """
    Prettily display an error for the given Pass with missing dependencies.
    """
    print_with_style(
        f'{opt_pass.__class__.__name__} is unavailable due to missing dependencies!',
        file='stderr',
        style='red'
    )
    for dep in sorted(opt_pass.get_dependencies(), key=str):
        if dep.satisfied:
            print_with_style(f'✓ {dep}', style='green')
        else:
            print_with_style(f'✗ {dep}: {dep.install_hint}', style='red')


def audit_passes(used: list[Pass]):
    all_passes = set(Pass.get_all_passes())
    available_passes = set(Pass.get_available_passes())
    groups = {
        'Available passes': available_passes,
        'Unavailable passes': all_passes - available_passes,
        'Used passes': {p.__class__ for p in used},
    }
    for group_label, pass_group in groups.items():
        print_with_style(f'{group_label} ({len(pass_group)})')
        for opt_pass in sorted(pass_group, key=lambda p: p.__name__):
            pprint_pass(opt_pass)


def main(arguments: list[str] | None = None):
    """
    sprat main function. Combines an optional config file with command line
    options, then runs the optimization pipeline once. Exits non-zero only
    when the run could not start.
    """
    args = parse_args(arguments)
    settings, passes = load_config(args.config_file) if args.config_file else (None, None)
    passes = passes if passes is not None else default_passes()

    if args.audit_passes:
        audit_passes(passes)
        return

    try:
        context = Context(resolve_settings(merge_settings(settings, args)), passes)
        context.run()
    except PassUnavailableException as e:
        pprint_missing_deps(e.opt_pass)
        sys.exit(1)
    except SetupError as e:
        print_with_style(str(e), file='stderr', style='red')
        sys.exit(1)
