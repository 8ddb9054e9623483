"""
Importable collaborators a pass relies on, checked before a run starts and
loaded by the collaborators which drive them.
"""
from __future__ import annotations

import abc
import importlib
import types


class Dependency(abc.ABC):
    """
    A base class for collaborator libraries which can be checked for, loaded,
    and combined with `|` into alternatives.
    """

    @property
    def satisfied(self) -> bool:
        """
        A bool indicating whether this dependency can be loaded.
        """
        try:
            self.load()
        except ImportError:
            return False
        return True

    @property
    @abc.abstractmethod
    def install_hint(self) -> str:
        """
        A string giving help on how to install this dependency.
        """

    @abc.abstractmethod
    def load(self) -> types.ModuleType:
        """
        Import and return the module behind this dependency, raising
        ImportError if it is missing.
        """

    def __repr__(self):
        return f'{self.__class__.__name__}({self}, satisfied={self.satisfied})'

    def __or__(self, other: Dependency):
        return _OrDependency(self, other)


class _OrDependency(Dependency):
    """
    Either of two interchangeable libraries, preferring the left one.
    """
    def __init__(self, left: Dependency, right: Dependency):
        self.left = left
        self.right = right

    def __str__(self):
        return f'({self.left} | {self.right})'

    @property
    def install_hint(self):
        return f'{self.left.install_hint} or {self.right.install_hint}'

    def load(self):
        try:
            return self.left.load()
        except ImportError:
            return self.right.load()


class PipDependency(Dependency):
    """
    A Dependency on a pip-installable package, imported as @check_name when
    that differs from its distribution @name.
    """
    def __init__(self,
                 name: str,
                 source: str | None = None,
                 check_name: str | None = None):
        self.name = name
        self.source = source or name
        self.check_name = check_name or name

    def __str__(self):
        return self.name

    @property
    def install_hint(self):
        return f'pip install {self.source}'

    def load(self):
        return importlib.import_module(self.check_name)
