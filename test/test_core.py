import json
from pathlib import Path

import pytest

from sprat.core import (
    DEFAULT_SETTINGS, CollaboratorInitError, Context, Pass, PassUnavailableException,
    ProcessedFileRecord, SetupError, resolve_settings,
)
from sprat.dependencies import PipDependency
from sprat.test_harness import make_context, make_site


class RecordingPass(Pass):
    """
    Renames every .txt asset to .out, failing on any whose content is 'fail'.
    """
    label = 'text files'
    extensions = frozenset({'.txt'})

    def __init__(self, log: list[str], name: str = 'recording'):
        self.log = log
        self.name = name

    def setup(self):
        self.log.append(f'{self.name}:setup:{self.context.state}')

    def process(self, path: Path):
        self.log.append(f'{self.name}:{path.name}:{self.context.state}')
        if path.read_text('utf-8') == 'fail':
            raise RuntimeError('refusing to process')
        new_path = path.with_suffix('.out')
        path.rename(new_path)
        return [new_path]


class UnavailablePass(RecordingPass):
    @classmethod
    def get_dependencies(cls):
        return {PipDependency('sprat-missing', check_name='sprat_missing_dependency')}


class BrokenCollaboratorPass(RecordingPass):
    def setup(self):
        raise CollaboratorInitError('collaborator refused to start')


@pytest.fixture
def site(tmp_path: Path):
    return make_site(tmp_path / 'src', {
        'a.txt': 'A',
        'b.txt': 'fail',
        'c.txt': 'C',
        'nested/d.txt': 'D',
        '.hidden/e.txt': 'E',
    })


def test_resolve_settings():
    assert resolve_settings() == DEFAULT_SETTINGS
    settings = resolve_settings({'image_format': 'webp', 'manifest': None})
    assert settings['image_format'] == 'webp'
    assert settings['source_dir'] == Path('src')
    assert settings['manifest'] is None


def test_processed_file_record():
    record = ProcessedFileRecord()
    record.extend([Path('a')])
    record.extend([Path('b'), Path('c')])
    paths = record.paths
    paths.append(Path('d'))
    assert list(record) == [Path('a'), Path('b'), Path('c')]
    assert len(record) == 3


def test_run_isolates_asset_failures(tmp_path: Path, site: Path):
    log: list[str] = []
    context = make_context(tmp_path, [RecordingPass(log)])
    processed = context.run()
    build = tmp_path / 'dist'

    assert processed == [build / 'a.out', build / 'c.out', build / 'nested' / 'd.out']
    assert [d.path for d in context.failures] == [build / 'b.txt']
    assert 'refusing to process' in context.failures[0].message
    assert (build / 'b.txt').exists()
    assert (build / '.hidden' / 'e.txt').exists()
    assert context.state == 'done'


def test_run_sequences_passes(tmp_path: Path, site: Path):
    log: list[str] = []
    first, second = RecordingPass(log, 'first'), RecordingPass(log, 'second')
    context = make_context(tmp_path, [first, second])
    processed = context.run()

    assert log == [
        'first:setup:idle',
        'second:setup:idle',
        'first:a.txt:optimizing',
        'first:b.txt:optimizing',
        'first:c.txt:optimizing',
        'first:d.txt:optimizing',
        # the first pass already renamed everything it could
        'second:b.txt:optimizing',
    ]
    assert len(processed) == 3
    assert len(context.failures) == 2


def test_run_replaces_previous_snapshot(tmp_path: Path, site: Path):
    make_site(tmp_path / 'dist', {'stale.txt': 'old output'})
    context = make_context(tmp_path, [])
    assert context.run() == []
    assert not (tmp_path / 'dist' / 'stale.txt').exists()
    assert (tmp_path / 'dist' / 'nested' / 'd.txt').read_text('utf-8') == 'D'
    assert (tmp_path / 'src' / 'a.txt').read_text('utf-8') == 'A'


def test_run_missing_source(tmp_path: Path):
    make_site(tmp_path / 'dist', {'previous.txt': 'kept'})
    context = make_context(tmp_path, [RecordingPass([])])
    with pytest.raises(SetupError, match='does not exist'):
        context.run()
    assert (tmp_path / 'dist' / 'previous.txt').exists()
    assert context.state == 'idle'


def test_collaborator_failure_aborts_before_mutation(tmp_path: Path, site: Path):
    make_site(tmp_path / 'dist', {'previous.txt': 'kept'})
    context = make_context(tmp_path, [RecordingPass([]), BrokenCollaboratorPass([])])
    with pytest.raises(CollaboratorInitError):
        context.run()
    assert (tmp_path / 'dist' / 'previous.txt').exists()
    assert not (tmp_path / 'dist' / 'a.txt').exists()


def test_unavailable_pass(tmp_path: Path):
    opt_pass = UnavailablePass([])
    with pytest.raises(PassUnavailableException) as excinfo:
        make_context(tmp_path, [opt_pass])
    assert excinfo.value.opt_pass is opt_pass
    assert UnavailablePass in Pass.get_all_passes()
    assert UnavailablePass not in Pass.get_available_passes()


def test_empty_pass(tmp_path: Path):
    make_site(tmp_path / 'src', {'index.html': ''})
    context = make_context(tmp_path, [RecordingPass([])])
    assert context.run() == []
    assert context.failures == []


def test_manifest(tmp_path: Path, site: Path):
    manifest = tmp_path / 'reports' / 'manifest.json'
    context = make_context(tmp_path, [RecordingPass([])], manifest=manifest)
    context.run()

    data = json.loads(manifest.read_text('utf-8'))
    assert data['processed'] == ['a.out', 'c.out', 'nested/d.out']
    assert data['failures'] == [{'path': 'b.txt', 'message': 'refusing to process'}]
    assert data['warnings'] == []
    assert data['settings']['build_dir'] == str(tmp_path / 'dist')


def test_report_warning(tmp_path: Path):
    context = make_context(tmp_path, [])
    diagnostic = context.report_warning(tmp_path / 'dist' / 'x.html', OSError('read-only'))
    assert context.warnings == [diagnostic]
    assert diagnostic.message == 'read-only'


@pytest.mark.parametrize('build_dir', ['src', '.', 'src/dist', 'src/../src'])
def test_run_refuses_overlapping_dirs(tmp_path: Path, site: Path, build_dir: str):
    log: list[str] = []
    context = make_context(tmp_path, [RecordingPass(log)], build_dir=tmp_path / build_dir)
    with pytest.raises(SetupError, match='overlaps'):
        context.run()
    assert log == []
    assert context.state == 'idle'
    assert (site / 'a.txt').read_text('utf-8') == 'A'
    assert (site / 'nested' / 'd.txt').read_text('utf-8') == 'D'
    assert not (site / 'dist').exists()


def test_run_allows_sibling_dirs(tmp_path: Path, site: Path):
    context = make_context(tmp_path, [], build_dir=tmp_path / 'src-dist')
    context.run()
    assert (tmp_path / 'src-dist' / 'a.txt').exists()
