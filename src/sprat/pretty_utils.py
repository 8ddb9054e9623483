"""
Internal utilities for progress bars and pretty printing.
"""
import typing as t

import rich.console
import rich.progress


T = t.TypeVar('T')

# Consoles without an explicit file follow whatever sys.stdout/sys.stderr are
# at print time.
_consoles = {
    'stdout': rich.console.Console(),
    'stderr': rich.console.Console(stderr=True),
}


def track_progress(iterable: t.Iterable[T], desc: str) -> t.Iterable[T]:
    """
    Progress tracker wrapping @iterable in a rich progress bar labelled with
    @desc.
    """
    yield from rich.progress.track(iterable, desc, console=_consoles['stdout'])


def print_with_style(*args, sep=' ', end='\n', file: str = 'stdout', style=None):
    """
    Enhanced print() function which supports rich console styles.
    """
    _consoles[file].print(*args, sep=sep, end=end, style=style)
