"""Exceptions raised for unrecoverable configuration and export failures.

Validation findings are never raised; they are collected as ``Issue`` values.
"""


class StegoError(Exception):
    """Base class for errors that abort a command."""


class WorkspaceError(StegoError):
    """The workspace root or its configuration could not be resolved."""


class ProjectError(StegoError):
    """A project could not be resolved or created."""


class ExportError(StegoError):
    """An export format is unknown or its converter failed."""
