from __future__ import annotations


class PermfindError(Exception):
    """Base class for every error that ends a pfind run."""


class ArgumentError(PermfindError):
    pass


class InvalidSpecError(PermfindError, ValueError):
    def __init__(self, text: str | None) -> None:
        self.text = text
        super().__init__(f"Permissions string '{text}' is invalid.")


class PathResolutionError(PermfindError):
    pass


class TraversalError(PermfindError):
    """A metadata query or directory listing failed during a walk."""

    def __init__(self, message: str, path: str, cause: OSError) -> None:
        self.path = path
        self.cause = cause
        super().__init__(message)

    @classmethod
    def cannot_stat(cls, path: str, cause: OSError) -> TraversalError:
        return cls(cannot_stat_message(path, cause), path, cause)

    @classmethod
    def cannot_open(cls, path: str, cause: OSError) -> TraversalError:
        return cls(cannot_open_message(path, cause), path, cause)


def cannot_stat_message(path: str, err: OSError) -> str:
    return f"Cannot stat '{path}'. {err.strerror or err}."


def cannot_open_message(path: str, err: OSError) -> str:
    return f"Cannot open directory '{path}'. {err.strerror or err}."
