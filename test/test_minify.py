from pathlib import Path


from sprat.minify import MinifyPass, minify_script, minify_style
from sprat.test_harness import failing_minifier, make_context, make_site, upper_minifier


def test_minify_script():
    minified = minify_script('function  add ( a, b ) {\n  // sum\n  return a + b;\n}\n', 'add.js')
    assert '\n' not in minified
    assert '// sum' not in minified
    assert 'return a+b' in minified


def test_minify_style():
    minified = minify_style('a {\n  color: red;\n}\n\n/* note */\n', 'site.css')
    assert 'a{color:red}' in minified
    assert 'note' not in minified


def test_minify_pass(tmp_path: Path):
    make_site(tmp_path / 'src', {
        'js/app.js': 'let a = 1;',
        'js/bad.js': 'let b = 2;',
        'css/site.css': 'a { color: red; }',
        'index.html': '<p>untouched</p>',
    })

    def script_minifier(code: str, filename: str):
        if filename.endswith('bad.js'):
            return failing_minifier(code, filename)
        return upper_minifier(code, filename)

    context = make_context(tmp_path, [MinifyPass(script_minifier, upper_minifier)])
    processed = context.run()
    build = tmp_path / 'dist'

    assert processed == [build / 'js' / 'app.js', build / 'css' / 'site.css']
    assert (build / 'js' / 'app.js').read_text('utf-8') == 'LET A = 1;'
    assert (build / 'js' / 'bad.js').read_text('utf-8') == 'let b = 2;'
    assert (build / 'css' / 'site.css').read_text('utf-8') == 'A { COLOR: RED; }'
    assert (build / 'index.html').read_text('utf-8') == '<p>untouched</p>'
    assert [d.path for d in context.failures] == [build / 'js' / 'bad.js']


def test_minify_pass_with_default_minifiers(tmp_path: Path):
    make_site(tmp_path / 'src', {
        'app.js': 'var  answer = 40 + 2;\n\n',
        'site.css': 'body {\n  margin: 0;\n}\n',
    })
    context = make_context(tmp_path, [MinifyPass()])
    context.run()
    assert '\n' not in (tmp_path / 'dist' / 'app.js').read_text('utf-8')
    assert (tmp_path / 'dist' / 'site.css').read_text('utf-8').startswith('body{margin:0}')
