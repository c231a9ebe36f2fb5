"""Spreadsheet importer for wine e-label products and ingredients.

parse() reads a spreadsheet into raw rows, normalize() maps them onto an
entity schema, submit() sends the accepted records in one bulk insert.
"""

from .services.importer import run_import, submit
from .services.normalizer import normalize
from .spreadsheet.reader import EmptyFileError, UnreadableFileError, parse

__version__ = "0.1.0"

__all__ = [
    "EmptyFileError",
    "UnreadableFileError",
    "normalize",
    "parse",
    "run_import",
    "submit",
]
