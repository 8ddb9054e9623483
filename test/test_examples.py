import pathlib

from sprat.cli import load_config, main


EXAMPLE_PATH = pathlib.Path(__file__).parent.parent / 'examples' / 'basic_site.py'


def test_example_config():
    settings, passes = load_config(EXAMPLE_PATH)
    assert settings and settings['source_dir'].is_dir()
    assert passes and [p.label for p in passes] == ['images', 'fonts', 'scripts and stylesheets']


def test_example_cli(tmp_path: pathlib.Path):
    output = tmp_path / 'basic_site'
    main([str(EXAMPLE_PATH), '-o', str(output)])

    source = EXAMPLE_PATH.parent / 'basic_site'
    assert (output / 'index.html').read_text('utf-8') == (source / 'index.html').read_text('utf-8')
    for name in ('styles.css', 'app.js'):
        minified = (output / 'static' / name).read_text('utf-8')
        assert len(minified) < len((source / 'static' / name).read_text('utf-8'))
        assert '//' not in minified and '/*' not in minified
