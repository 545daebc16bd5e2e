"""
nodehatch.renderer - Jinja2 Template Rendering
==============================================

Provides the ``TemplateStore`` (where templates live and which logical units
exist) and the ``TemplateRenderer`` (how they become files).

Template Units
--------------
Templates are addressed by logical unit, never by filesystem path:

    shared/package.json     -> shared/package.json.j2          (file unit)
    express/server          -> express/server.{js,ts}.j2        (file unit + ext)
    frontend/react          -> frontend/react/                  (directory unit)
    auth/jwt/backend/express/typescript                         (directory unit)

A unit may or may not exist. Callers decide whether a missing unit is fatal
(``MissingTemplateError``) or a no-op.

File naming conventions:
- ``*.j2`` files are rendered through Jinja2 and lose the ``.j2`` suffix
- Every other file is copied byte for byte under its own name

I/O goes through ``asyncio.to_thread`` so independent template groups can be
rendered concurrently on one event loop. Within one ``render_tree`` call the
walk is sequential, depth first, in sorted listing order.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from nodehatch.errors import MissingTemplateError


if TYPE_CHECKING:
    from collections.abc import Iterable


logger = logging.getLogger(__name__)

TEMPLATE_SUFFIX = ".j2"

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# =============================================================================
# Template Store
# =============================================================================

class TemplateStore:
    """
    Read-only view over a template directory, addressed by logical unit.

    Parameters
    ----------
    root : Path | None
        Template root. Defaults to the templates shipped with nodehatch.
    """

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root) if root is not None else _DEFAULT_TEMPLATE_DIR

    def directory(self, unit: str) -> Path | None:
        """Path of a directory unit, or ``None`` if it doesn't exist."""
        path = self.root / unit
        return path if path.is_dir() else None

    def file(self, unit: str, ext: str | None = None) -> str | None:
        """
        Loader key (posix path relative to root) of a file unit.

        Parameters
        ----------
        unit : str
            Logical unit, e.g. ``"shared/db/mongodb"``.

        ext : str | None
            Source extension to append before ``.j2`` (``"js"``/``"ts"``).

        Returns
        -------
        str | None
            Key usable with ``Environment.get_template``, or ``None``.
        """
        name = f"{unit}.{ext}{TEMPLATE_SUFFIX}" if ext else f"{unit}{TEMPLATE_SUFFIX}"
        if (self.root / name).is_file():
            return name
        return None


# =============================================================================
# Jinja2 custom filters
# =============================================================================

def _json_block_filter(value: Any, level: int = 1, indent: int = 2) -> str:
    """
    Dump ``value`` as JSON for embedding inside a JSON document.

    Continuation lines are indented by ``level`` steps so the block lines up
    with the key it belongs to.
    """
    text = json.dumps(value, indent=indent)
    return text.replace("\n", "\n" + " " * indent * level)


def _camel_case_filter(value: str) -> str:
    """Convert ``express-rate-limit`` to ``expressRateLimit``."""
    words = [word for word in re.split(r"[-_\s/@.]+", value) if word]
    if not words:
        return ""
    return words[0].lower() + "".join(word.capitalize() for word in words[1:])


def create_jinja_env(store: TemplateStore) -> Environment:
    """
    Create and configure the Jinja2 template environment.

    The environment is configured with:
    - Filesystem loading from the store root
    - Autoescaping disabled (we're generating code, not HTML)
    - Trim blocks and lstrip_blocks for cleaner output
    """
    env = Environment(
        loader=FileSystemLoader(str(store.root)),
        autoescape=select_autoescape([]),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )
    env.filters["json_block"] = _json_block_filter
    env.filters["camel_case"] = _camel_case_filter
    return env


# =============================================================================
# Renderer
# =============================================================================

def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _list_entries(path: Path) -> list[Path]:
    return sorted(path.iterdir(), key=lambda p: p.name)


class TemplateRenderer:
    """
    Renders template units into an output directory.

    The renderer never deletes anything and never looks at existing output
    to decide what to do: the template tree alone drives the result.
    """

    def __init__(self, store: TemplateStore | None = None) -> None:
        self.store = store or TemplateStore()
        self.env = create_jinja_env(self.store)

    # -- Single template rendering -----------------------------------------

    def render(self, template_key: str, context: dict[str, Any]) -> str:
        """Render one template (by loader key) to a string."""
        return self.env.get_template(template_key).render(**context)

    async def render_file(
        self,
        unit: str,
        output_path: Path,
        context: dict[str, Any],
        *,
        ext: str | None = None,
        required: bool = True,
    ) -> Path | None:
        """
        Render a file unit to ``output_path``.

        Parameters
        ----------
        unit : str
            Logical file unit, e.g. ``"express/server"``.

        output_path : Path
            Destination file. Parent directories are created.

        context : dict[str, Any]
            Template variables.

        ext : str | None
            Source extension selecting the language variant.

        required : bool
            Whether a missing unit is an error or a no-op.

        Returns
        -------
        Path | None
            The written path, or ``None`` when an optional unit is missing.

        Raises
        ------
        MissingTemplateError
            If the unit is required and absent.
        """
        key = self.store.file(unit, ext)
        if key is None:
            if required:
                raise MissingTemplateError(unit)
            logger.debug("Optional template %s not found, skipping", unit)
            return None

        content = self.render(key, context)
        await asyncio.to_thread(_write_text, output_path, content)
        logger.debug("Rendered %s -> %s", key, output_path)
        return output_path

    # -- Tree rendering ----------------------------------------------------

    async def render_tree(
        self,
        unit: str,
        output_root: Path,
        context: dict[str, Any],
        *,
        exclude: Iterable[str] = (),
    ) -> list[Path]:
        """
        Reproduce a directory unit under ``output_root``.

        Directories are created (existing ones are fine). ``*.j2`` files are
        rendered with ``context`` and written without the suffix; any other
        file is copied unchanged.

        Parameters
        ----------
        unit : str
            Logical directory unit, e.g. ``"frontend/react"``.

        output_root : Path
            Directory that mirrors the unit's root.

        context : dict[str, Any]
            Template variables.

        exclude : Iterable[str]
            Template file paths, relative to the unit, to leave out
            (e.g. ``"package.json.j2"`` when it is rendered separately).

        Returns
        -------
        list[Path]
            Files written, in traversal order.

        Raises
        ------
        MissingTemplateError
            If the unit does not exist.
        """
        source_root = self.store.directory(unit)
        if source_root is None:
            raise MissingTemplateError(unit)

        skipped = set(exclude)
        written: list[Path] = []
        await asyncio.to_thread(output_root.mkdir, parents=True, exist_ok=True)
        await self._walk(source_root, source_root, output_root, context, skipped, written)
        return written

    async def _walk(
        self,
        source_root: Path,
        source_dir: Path,
        dest_dir: Path,
        context: dict[str, Any],
        skipped: set[str],
        written: list[Path],
    ) -> None:
        for entry in await asyncio.to_thread(_list_entries, source_dir):
            relative = entry.relative_to(source_root).as_posix()

            if entry.is_dir():
                target_dir = dest_dir / entry.name
                await asyncio.to_thread(target_dir.mkdir, parents=True, exist_ok=True)
                await self._walk(source_root, entry, target_dir, context, skipped, written)
                continue

            if relative in skipped:
                continue

            if entry.name.endswith(TEMPLATE_SUFFIX):
                target = dest_dir / entry.name[: -len(TEMPLATE_SUFFIX)]
                key = entry.relative_to(self.store.root).as_posix()
                content = self.render(key, context)
                await asyncio.to_thread(_write_text, target, content)
            else:
                target = dest_dir / entry.name
                await asyncio.to_thread(shutil.copyfile, entry, target)

            logger.debug("Wrote %s", target)
            written.append(target)
