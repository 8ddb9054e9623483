"""
Core classes and types for the sprat optimization pipeline.
"""
from __future__ import annotations

import abc
import json
import shutil
import typing as t
from pathlib import Path

from .catalog import find_files
from .paths import to_reference
from .pretty_utils import print_with_style, track_progress

if t.TYPE_CHECKING:
    from collections.abc import Iterable, Sequence, Set
    from .dependencies import Dependency
    from .rewrite import RewriteReport


RunState = t.Literal['idle', 'preparing', 'optimizing', 'done']


class InputBuildSettings(t.TypedDict, total=False):
    """
    TypedDict for defining build settings in a sprat config file.
    """
    source_dir: Path
    build_dir: Path
    image_format: str
    image_quality: int
    image_effort: int
    manifest: Path | None


class BuildSettings(t.TypedDict):
    """
    TypedDict for processed build settings ready for passing to Context.
    """
    source_dir: Path
    build_dir: Path
    image_format: str
    image_quality: int
    image_effort: int
    manifest: Path | None


DEFAULT_SETTINGS = BuildSettings(
    source_dir=Path('src'),
    build_dir=Path('dist'),
    image_format='avif',
    image_quality=60,
    image_effort=6,
    manifest=None,
)


def resolve_settings(settings: InputBuildSettings | None = None) -> BuildSettings:
    """
    Fill in any settings missing from @settings with their defaults.
    """
    resolved = dict(DEFAULT_SETTINGS)
    if settings:
        resolved.update({k: v for k, v in settings.items() if v is not None})
    return t.cast(BuildSettings, resolved)


class Diagnostic(t.NamedTuple):
    """
    A problem tied to one asset or text file.
    """
    path: Path
    message: str


class ProcessedFileRecord:
    """
    Append-only record of every output path produced during a run.
    """
    def __init__(self):
        self._paths: list[Path] = []

    def extend(self, paths: Iterable[Path]):
        self._paths.extend(paths)

    @property
    def paths(self) -> list[Path]:
        return list(self._paths)

    def __iter__(self):
        return iter(self._paths)

    def __len__(self):
        return len(self._paths)


class Context:
    """
    Owner of the build snapshot for a run, and sequencer of the passes that
    optimize it.
    """
    def __init__(self, settings: BuildSettings, passes: list[Pass]):
        self.settings = settings
        self.state: RunState = 'idle'
        self.processed = ProcessedFileRecord()
        self.failures: list[Diagnostic] = []
        self.warnings: list[Diagnostic] = []
        self.passes: list[Pass] = []
        for opt_pass in passes:
            self.passes.append(opt_pass)
            self.bind(opt_pass)

    @t.overload
    def __getitem__(self, key: t.Literal['source_dir', 'build_dir']) -> Path: ...
    @t.overload
    def __getitem__(self, key: t.Literal['image_format']) -> str: ...
    @t.overload
    def __getitem__(self, key: t.Literal['image_quality', 'image_effort']) -> int: ...
    @t.overload
    def __getitem__(self, key: t.Literal['manifest']) -> Path | None: ...
    def __getitem__(self, key):
        return self.settings[key]

    def bind(self, opt_pass: Pass):
        """
        Bind a Pass to this Context, checking to ensure its availability.
        """
        if not opt_pass.is_available():
            raise PassUnavailableException(opt_pass)
        opt_pass.bind(self)

    def reference(self, path: Path):
        """
        Portable reference for a path inside the build snapshot.
        """
        return to_reference(self['build_dir'], path)

    def find_files(self, extensions: t.Collection[str]):
        """
        Scan the build snapshot for files with one of @extensions.
        """
        return find_files(self['build_dir'], extensions)

    def report_failure(self, path: Path, error: BaseException | str):
        """
        Record and print a per-asset failure.
        """
        diagnostic = Diagnostic(path, str(error))
        self.failures.append(diagnostic)
        print_with_style(f'✗ Failed to process {self._label(path)}: {error}', file='stderr', style='red')
        return diagnostic

    def report_warning(self, path: Path, error: BaseException | str):
        """
        Record and print a per-file problem which did not fail its asset.
        """
        diagnostic = Diagnostic(path, str(error))
        self.warnings.append(diagnostic)
        print_with_style(f'! {self._label(path)}: {error}', file='stderr', style='yellow')
        return diagnostic

    def _label(self, path: Path):
        if path.is_relative_to(self['build_dir']):
            return self.reference(path)
        return str(path)

    def check_separate_dirs(self):
        """
        Refuse to run when discarding the build directory would also discard
        some of the source tree, or when the snapshot would be cloned into the
        tree it is cloned from.
        """
        source_dir, build_dir = self['source_dir'].resolve(), self['build_dir'].resolve()
        if build_dir == source_dir or build_dir in source_dir.parents or source_dir in build_dir.parents:
            raise SetupError(
                f'Build directory "{self["build_dir"]}" overlaps source directory "{self["source_dir"]}"'
            )

    def prepare(self):
        """
        Discard the previous build snapshot and clone the source tree into a
        fresh one.
        """
        source_dir, build_dir = self['source_dir'], self['build_dir']
        print_with_style(f'Preparing {build_dir} directory...')
        if build_dir.exists():
            shutil.rmtree(build_dir)
        shutil.copytree(source_dir, build_dir)
        print_with_style(f'✓ Files copied from {source_dir} to {build_dir}', style='green')

    def run(self) -> list[Path]:
        """
        Validate the environment, prepare the snapshot, then run every pass in
        order. Returns every path produced across all passes.
        """
        if not self['source_dir'].is_dir():
            raise SetupError(f'Source directory "{self["source_dir"]}" does not exist')
        self.check_separate_dirs()
        # Collaborators are initialized up front so that a broken one aborts
        # the run before the snapshot is touched.
        for opt_pass in self.passes:
            opt_pass.setup()

        self.state = 'preparing'
        self.prepare()

        self.state = 'optimizing'
        for opt_pass in self.passes:
            self.processed.extend(opt_pass())

        self.state = 'done'
        print_with_style(
            f'\nBuild and optimization complete! Processed {len(self.processed)} files.',
            style='bold'
        )
        if manifest := self['manifest']:
            self.dump_manifest(manifest)
        return self.processed.paths

    def dump_manifest(self, path: Path):
        """
        Dump the processed files and diagnostics of this run into a JSON file.
        """
        data = {
            'settings': {k: str(v) for k, v in self.settings.items()},
            'processed': [self.reference(p) for p in self.processed],
            'failures': [{'path': self._label(d.path), 'message': d.message} for d in self.failures],
            'warnings': [{'path': self._label(d.path), 'message': d.message} for d in self.warnings],
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open('w', encoding='utf-8', newline='\n') as file:
            json.dump(data, file, indent=2)


class Pass(abc.ABC):
    """
    Abstract base class for Passes, the strictly sequential stages of an
    optimization run. Each Pass drives one asset at a time to completion,
    including every text rewrite that asset causes.
    """
    context: Context
    label = 'assets'
    extensions: frozenset[str] = frozenset()
    _pass_registry: list[t.Type[Pass]] = []

    def __init_subclass__(cls, **kw):
        super().__init_subclass__(**kw)
        cls._pass_registry.append(cls)

    @classmethod
    def get_all_passes(cls):
        """
        Return a list of all currently known Passes.
        """
        return list(cls._pass_registry)

    @classmethod
    def get_available_passes(cls):
        """
        Return a list of all currently known Passes whose requirements are met.
        """
        return [p for p in cls._pass_registry if p.is_available()]

    @classmethod
    def is_available(cls) -> bool:
        """
        Return whether this Pass's requirements are installed, making it
        available for use.
        """
        return all(d.satisfied for d in cls.get_dependencies())

    @classmethod
    def get_dependencies(cls) -> Set[Dependency]:
        """
        Return the requirements for this Pass.
        """
        return set()

    def bind(self, context: Context):
        """
        Bind this Pass to a Context.
        """
        self.context = context

    def setup(self):
        """
        Initialize external collaborators. Called once per run, before the
        build snapshot is prepared; raising here aborts the run.
        """

    def find_assets(self) -> list[Path]:
        """
        Overridable function to get the assets this Pass should process.
        """
        return self.context.find_files(self.extensions)

    def log_rewrites(self, report: RewriteReport, action: str):
        """
        Print the files a rewrite changed, and record the ones it could not
        read or write as warnings.
        """
        for path in report.rewritten:
            print_with_style(f'✓ {action} in: {self.context.reference(path)}', style='green')
        for path, error in report.errors:
            self.context.report_warning(path, error)

    @abc.abstractmethod
    def process(self, path: Path) -> Sequence[Path]:
        """
        Process a single asset, returning the paths it produced.
        """

    def __call__(self) -> list[Path]:
        assets = self.find_assets()
        if not assets:
            print_with_style(f'No {self.label} to optimize')
            return []

        produced: list[Path] = []
        for path in track_progress(assets, f'Optimizing {len(assets)} {self.label}...'):
            try:
                produced.extend(self.process(path))
            except Exception as e:  # pylint: disable=broad-except
                self.context.report_failure(path, e)
        return produced


class SetupError(Exception):
    """
    Exception raised when a run cannot start, such as when the source
    directory is missing.
    """


class CollaboratorInitError(SetupError):
    """
    Exception raised when an external collaborator fails its one-time
    initialization.
    """


class PassUnavailableException(Exception):
    """
    Exception raised when a pass to be used is unavailable due to missing
    dependencies.
    """
    def __init__(self, opt_pass: Pass, *args: t.Any):
        self.opt_pass = opt_pass
        super().__init__(*args)
