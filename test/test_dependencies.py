import pytest

from sprat.dependencies import PipDependency


MISSING = PipDependency('sprat-missing', check_name='sprat_missing_dependency')
PRESENT = PipDependency('pytest')


def test_pip_dependency():
    assert PRESENT.satisfied
    assert PRESENT.load() is pytest
    assert not MISSING.satisfied
    assert MISSING.install_hint == 'pip install sprat-missing'
    with pytest.raises(ImportError):
        MISSING.load()


def test_pip_dependency_source():
    dependency = PipDependency('fonttools', source='fonttools[woff]', check_name='fontTools')
    assert str(dependency) == 'fonttools'
    assert dependency.install_hint == 'pip install fonttools[woff]'


@pytest.mark.parametrize('left,right,satisfied', [
    (PRESENT, MISSING, True),
    (MISSING, PRESENT, True),
    (MISSING, MISSING, False),
])
def test_alternative_dependency(left, right, satisfied):
    dependency = left | right
    assert dependency.satisfied is satisfied
    assert str(dependency) == f'({left} | {right})'
    if satisfied:
        assert dependency.load() is pytest
    else:
        with pytest.raises(ImportError):
            dependency.load()


def test_alternative_dependency_install_hint():
    other = PipDependency('sprat-other', check_name='sprat_other_dependency')
    assert (MISSING | other).install_hint == 'pip install sprat-missing or pip install sprat-other'
