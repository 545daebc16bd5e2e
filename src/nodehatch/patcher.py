"""
nodehatch.patcher - Idempotent Source Patching
==============================================

Extends an already generated file with feature wiring without re-rendering
it. The server templates declare named insertion slots as comments:

    // nodehatch:imports
    // nodehatch:routes

An ``Insertion`` names a slot, the text to add next to it, and a marker
string whose presence means the insertion was already applied. Patching is
therefore safe to repeat: a second run finds every marker and changes
nothing.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from nodehatch.errors import PatchAnchorMissingError, PatchTargetMissingError
from nodehatch.models import Authentication, Backend


if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from nodehatch.models import ProjectConfig


logger = logging.getLogger(__name__)

IMPORTS_SLOT = "// nodehatch:imports"
ROUTES_SLOT = "// nodehatch:routes"


class Placement(str, Enum):
    """Where inserted text goes relative to its anchor line."""

    BEFORE = "before"
    AFTER = "after"


@dataclass(frozen=True)
class Insertion:
    """
    One idempotent text insertion.

    Attributes
    ----------
    anchor : str
        Text whose first occurrence locates the insertion line.

    text : str
        Line(s) to insert, without trailing newline.

    marker : str
        If already present in the file, the insertion is skipped.

    placement : Placement
        Insert on the line before or after the anchor line.
    """

    anchor: str
    text: str
    marker: str
    placement: Placement = Placement.BEFORE


def apply_insertions(content: str, insertions: Sequence[Insertion], *, source: Path) -> str:
    """
    Apply insertions to ``content`` and return the new text.

    Inserted lines copy the anchor line's indentation. After all insertions
    a cleanup pass collapses runs of identical consecutive inserted lines.

    Raises
    ------
    PatchAnchorMissingError
        If an insertion still needs applying but its anchor is absent.
    """
    for insertion in insertions:
        if insertion.marker in content:
            logger.debug("Marker %r already present, skipping", insertion.marker)
            continue

        index = content.find(insertion.anchor)
        if index == -1:
            raise PatchAnchorMissingError(insertion.anchor, source)

        line_start = content.rfind("\n", 0, index) + 1
        line_end = content.find("\n", index)
        if line_end == -1:
            line_end = len(content)

        prefix = content[line_start:index]
        indent = prefix if not prefix.strip() else ""

        if insertion.placement is Placement.BEFORE:
            content = f"{content[:line_start]}{indent}{insertion.text}\n{content[line_start:]}"
        else:
            content = f"{content[:line_end]}\n{indent}{insertion.text}{content[line_end:]}"

    return collapse_duplicates(content, insertions)


def collapse_duplicates(content: str, insertions: Sequence[Insertion]) -> str:
    """Collapse repeated consecutive copies of any inserted block to one."""
    for insertion in insertions:
        block = re.escape(insertion.text)
        pattern = re.compile(rf"^([ \t]*{block}\n)(?:[ \t]*{block}\n)+", re.MULTILINE)
        content = pattern.sub(r"\1", content)
    return content


def integrate_feature(target_file: Path, insertions: Sequence[Insertion]) -> bool:
    """
    Patch ``target_file`` in place.

    Parameters
    ----------
    target_file : Path
        Previously rendered source file.

    insertions : Sequence[Insertion]
        Insertions to apply, in order.

    Returns
    -------
    bool
        True if the file changed and was rewritten.

    Raises
    ------
    PatchTargetMissingError
        If the file does not exist.
    """
    if not target_file.is_file():
        raise PatchTargetMissingError(target_file)

    original = target_file.read_text(encoding="utf-8")
    patched = apply_insertions(original, insertions, source=target_file)

    if patched == original:
        return False

    target_file.write_text(patched, encoding="utf-8")
    logger.debug("Patched %s", target_file)
    return True


def auth_insertions(config: ProjectConfig) -> list[Insertion]:
    """
    Insertions wiring the auth routes into the server entry point.

    Each marker is the full inserted line, so an unrelated mention of the
    route path or module elsewhere in the file does not suppress the wiring.

    Returns
    -------
    list[Insertion]
        Route import, then route registration. Empty when authentication is
        off or there is no backend.
    """
    if config.authentication is Authentication.NONE or not config.has_backend:
        return []

    module = "./routes/auth.routes"
    if config.is_typescript:
        import_line = f"import authRoutes from '{module}';"
    else:
        import_line = f"const authRoutes = require('{module}');"

    if config.backend is Backend.FASTIFY:
        mount_line = "app.register(authRoutes, { prefix: '/api/auth' });"
    else:
        mount_line = "app.use('/api/auth', authRoutes);"

    return [
        Insertion(anchor=IMPORTS_SLOT, text=import_line, marker=import_line),
        Insertion(anchor=ROUTES_SLOT, text=mount_line, marker=mount_line),
    ]
