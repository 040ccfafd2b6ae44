"""Errors that end a command, each with an exit code."""

from __future__ import annotations

from crate_release import shell


class CliError(Exception):
    """An error that ends the program with ``code``, optionally with a message."""

    def __init__(self, error: BaseException | None = None, code: int = 101) -> None:
        super().__init__(error)
        self.error = error
        self.code = code

    @classmethod
    def silent(cls, code: int) -> CliError:
        """An error that exits with ``code`` and reports nothing."""
        return cls(None, code)

    @classmethod
    def message(cls, error: BaseException | str) -> CliError:
        """An error that reports ``error`` and exits with code 101."""
        if isinstance(error, CliError):
            return error
        if not isinstance(error, BaseException):
            error = RuntimeError(str(error))
        return cls(error, 101)

    def __str__(self) -> str:
        return "" if self.error is None else str(self.error)


def report(error: BaseException | None) -> int:
    """Report ``error`` on stderr and return the exit code to leave with."""
    if error is None:
        return 0
    if not isinstance(error, CliError):
        error = CliError.message(error)
    if error.error is not None:
        try:
            shell.error(error.error)
        except OSError:
            # The output may be gone (e.g. a broken pipe); exit anyway.
            pass
    return error.code