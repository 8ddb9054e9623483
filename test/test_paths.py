from pathlib import Path

import pytest

from sprat.paths import (
    change_extension, is_external, normalize_separators, relative_reference,
    resolve_reference, strip_extension, to_reference,
)


ROOT = Path('dist')


@pytest.mark.parametrize('path,expected', [
    (ROOT / 'a.png', 'a.png'),
    (ROOT / 'images' / 'photo.jpg', 'images/photo.jpg'),
    (ROOT / 'images' / 'original' / 'photo.avif', 'images/original/photo.avif'),
])
def test_to_reference(path: Path, expected: str):
    assert to_reference(ROOT, path) == expected


def test_to_reference_outside_root():
    with pytest.raises(ValueError):
        to_reference(ROOT, Path('elsewhere') / 'a.png')


def test_normalize_separators():
    assert normalize_separators('images\\sub\\a.png') == 'images/sub/a.png'


@pytest.mark.parametrize('from_file,target,expected', [
    (ROOT / 'index.html', ROOT / 'images' / 'a.png', 'images/a.png'),
    (ROOT / 'blog' / 'post.html', ROOT / 'images' / 'a.png', '../images/a.png'),
    (ROOT / 'images' / 'page.html', ROOT / 'images' / '128' / 'a-128w.avif', '128/a-128w.avif'),
])
def test_relative_reference(from_file: Path, target: Path, expected: str):
    assert relative_reference(from_file, target) == expected


@pytest.mark.parametrize('value,expected', [
    ('images/a.png', 'images/a.png'),
    ('./images/a.png', 'images/a.png'),
    ('/images/a.png', 'images/a.png'),
    ('../images/a.png', 'images/a.png'),
    ('../images/a.png?v=2#top', 'images/a.png'),
    ('..\\images\\a.png', 'images/a.png'),
    ('../../a.png', None),
    ('https://example.com/a.png', None),
    ('//cdn.example.com/a.png', None),
    ('data:image/png;base64,AAAA', None),
    ('', None),
])
def test_resolve_reference(value: str, expected: str | None):
    assert resolve_reference(ROOT, ROOT / 'blog' / 'post.html', value) == expected


def test_resolve_reference_from_root_file():
    assert resolve_reference(ROOT, ROOT / 'index.html', 'a.png') == 'a.png'


@pytest.mark.parametrize('value,expected', [
    ('http://x/a.png', True),
    ('mailto:me@example.com', True),
    ('//x/a.png', True),
    ('a.png', False),
    ('/a.png', False),
])
def test_is_external(value: str, expected: bool):
    assert is_external(value) is expected


def test_extension_helpers():
    assert strip_extension('images/photo.jpg') == 'images/photo'
    assert strip_extension('images.v2/photo') == 'images.v2/photo'
    assert change_extension(Path('fonts/a.ttf'), '.woff2') == Path('fonts/a.woff2')
