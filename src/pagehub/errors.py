"""Exception types raised by the workspace data layer."""

from __future__ import annotations


class PageHubError(Exception):
    """Base class for every error raised by :mod:`pagehub`."""


class WorkspaceNotInitializedError(PageHubError, RuntimeError):
    """A workspace service was requested before a workspace was opened."""


class DocumentNotFoundError(PageHubError, FileNotFoundError):
    """The backing file of a document does not exist."""


class GitCommandError(PageHubError):
    """A ``git`` invocation exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        self.args_ = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        super().__init__(f"git {' '.join(self.args_)} failed ({returncode}): {self.stderr}")
