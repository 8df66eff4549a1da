from __future__ import annotations

from pathlib import Path


class TreeSnapError(Exception):
    """
    Base class for treesnap errors.
    """


class RootNotFoundError(TreeSnapError):
    """
    A tree root that must exist does not.
    """


class RootNotADirectoryError(TreeSnapError):
    """
    A tree root exists but is not a directory.
    """


class DestinationExistsError(TreeSnapError):
    """
    A fresh copy was requested but the destination is already present.
    """


class InvalidArgumentError(TreeSnapError, ValueError):
    """
    A bad interval, path mapping or other caller-supplied value.
    """


class ConfigError(TreeSnapError, ValueError):
    """
    The jobs file could not be loaded or failed validation.
    """


class EntryError(TreeSnapError):
    """
    A single entry could not be brought into agreement with the
    authoritative tree.
    """

    action = "sync"

    def __init__(self, path: Path, cause: BaseException) -> None:
        super().__init__(f"{self.action} failed for {path}: {cause}")
        self.path = path
        self.cause = cause


class CreateFailedError(EntryError):
    action = "create"


class CopyFailedError(EntryError):
    action = "copy"


class DeleteFailedError(EntryError):
    action = "delete"
