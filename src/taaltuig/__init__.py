"""Taaltuig: SM-2 scheduling core with Anki-style learning steps."""

from taaltuig.consts import VERSION

__version__ = VERSION
