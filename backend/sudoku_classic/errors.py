"""Failure taxonomy shared by the game and history services.

Routes translate these into JSON error bodies; the services themselves
never retry.
"""


class SudokuError(Exception):
    """Base class for every failure raised by the core."""


class PuzzleSourceError(SudokuError):
    """The puzzle service failed or returned something unusable."""


class PuzzleFormatError(PuzzleSourceError):
    """A puzzle or solution grid is not a well-formed 9x9 matrix."""


class StoreAccessError(SudokuError):
    """The local key-value store could not be read or written."""


class RemoteStoreError(SudokuError):
    """The remote document store rejected or failed a request."""
