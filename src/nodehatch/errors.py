"""
nodehatch.errors - Error Taxonomy
=================================

Every error nodehatch raises on purpose derives from ``NodehatchError`` so
callers (the CLI, or code using nodehatch as a library) can catch the whole
family in one place.

Hierarchy
---------
::

    NodehatchError
    ├── ValidationError          - bad project name / inconsistent options
    ├── MissingTemplateError     - required template unit not shipped
    ├── PatchTargetMissingError  - patcher pointed at a file never rendered
    ├── PatchAnchorMissingError  - server template lacks an insertion slot
    ├── ExternalProcessError     - git / npm exited non-zero (recovered)
    └── TaskFailedError          - wraps any of the above with a task name

Only ``ExternalProcessError`` is recovered locally by the generator; the
others abort the pipeline.
"""

from __future__ import annotations

from pathlib import Path


class NodehatchError(Exception):
    """Base class for all nodehatch errors."""


class ValidationError(NodehatchError):
    """
    The configuration violates a business rule.

    Raised while validating, before anything is written to disk.
    """


class MissingTemplateError(NodehatchError):
    """
    A required template unit is not available.

    The message names the logical unit (e.g. ``express/server``), not the
    filesystem path, since the path is an implementation detail of the
    template store.
    """

    def __init__(self, unit: str) -> None:
        self.unit = unit
        super().__init__(f"Missing template: {unit}")


class PatchTargetMissingError(NodehatchError):
    """The file to patch does not exist (it was never rendered)."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Cannot patch missing file: {path}")


class PatchAnchorMissingError(NodehatchError):
    """The insertion slot is absent from the file being patched."""

    def __init__(self, anchor: str, path: Path) -> None:
        self.anchor = anchor
        self.path = path
        super().__init__(f"Insertion slot '{anchor}' not found in {path.name}")


class ExternalProcessError(NodehatchError):
    """An external command (git, npm) failed or could not be started."""

    def __init__(self, command: list[str], returncode: int | None = None) -> None:
        self.command = command
        self.returncode = returncode
        detail = f"exit code {returncode}" if returncode is not None else "not found"
        super().__init__(f"Command '{' '.join(command)}' failed ({detail})")


class TaskFailedError(NodehatchError):
    """A pipeline task failed; carries the originating task name."""

    def __init__(self, task_name: str, cause: BaseException) -> None:
        self.task_name = task_name
        self.cause = cause
        super().__init__(f"{task_name}: {cause}")
