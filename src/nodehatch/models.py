"""
nodehatch.models - Pydantic Models for Project Configuration
============================================================

This module defines the data models shared by every part of nodehatch.
Pydantic gives us:

1. **Validation**: enum membership and middleware choices are checked the
   moment a configuration is built, whether by prompts, flags or TOML
2. **Immutability**: ``ProjectConfig`` and ``RenderContext`` are frozen, so
   every pipeline task sees the same snapshot
3. **Serialization**: easy conversion to/from TOML and plain dictionaries

Architecture Notes
------------------
The models are organized in a hierarchy:

    ProjectConfig (main, frozen)
    ├── Language (enum)
    ├── Backend (enum)        -> middleware_choices
    ├── Database (enum)
    ├── Frontend (enum)
    ├── Authentication (enum)
    ├── Bundler (enum)
    └── shape -> ProjectShape (BACKEND_ONLY | FRONTEND_ONLY | FULLSTACK)

    RenderContext (frozen, derived per run)

Shape checks (enum values, middleware allowed for the backend) live here.
Business rules that the generator enforces while validating (project name
grammar, database requires a backend) live in ``generator.py`` so they fail
a run cleanly instead of failing model construction.

Usage Example
-------------
>>> from nodehatch.models import Backend, ProjectConfig
>>> config = ProjectConfig(name="demo-api", backend=Backend.EXPRESS)
>>> config.shape
<ProjectShape.BACKEND_ONLY: 'backend-only'>
>>> config.ext
'js'
"""

from __future__ import annotations

import re
import tomllib
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

import tomlkit
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from nodehatch.errors import ValidationError


# =============================================================================
# Constants
# =============================================================================

# npm package naming rules: optional @scope/ prefix, lowercase only
PROJECT_NAME_PATTERN = re.compile(
    r"^(?:@[a-z0-9-*~][a-z0-9-*._~]*/)?[a-z0-9-~][a-z0-9-._~]*$"
)


# =============================================================================
# Enumerations
# =============================================================================

class Language(str, Enum):
    """
    Source language of the generated project.

    The language decides the file extension of every generated source file
    and whether TypeScript tooling is added to the dev dependencies.
    """

    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"

    @property
    def ext(self) -> str:
        """File extension for generated sources (``js`` or ``ts``)."""
        return "ts" if self is Language.TYPESCRIPT else "js"


class Backend(str, Enum):
    """
    Backend web framework.

    Attributes
    ----------
    EXPRESS : str
        Express 4 with classic ``app.use`` middleware.

    FASTIFY : str
        Fastify 4 with the ``@fastify/*`` plugin ecosystem.

    NONE : str
        No server at all; the project is frontend-only.
    """

    EXPRESS = "express"
    FASTIFY = "fastify"
    NONE = "none"

    @property
    def description(self) -> str:
        """Human-readable description for CLI prompts."""
        descriptions = {
            Backend.EXPRESS: "Express - minimal and flexible",
            Backend.FASTIFY: "Fastify - fast, plugin based",
            Backend.NONE: "None - frontend only",
        }
        return descriptions[self]

    @property
    def middleware_choices(self) -> tuple[str, ...]:
        """
        Middleware names that may be selected with this backend.

        Returns
        -------
        tuple[str, ...]
            Allowed names, in prompt order. Empty for ``NONE``.
        """
        base = ("cors", "helmet")
        if self is Backend.EXPRESS:
            return (*base, "morgan", "express-rate-limit")
        if self is Backend.FASTIFY:
            return (*base, "rate-limit")
        return ()


class Database(str, Enum):
    """Database backing the generated server."""

    NONE = "none"
    MONGODB = "mongodb"
    POSTGRESQL = "postgresql"

    @property
    def description(self) -> str:
        descriptions = {
            Database.NONE: "None",
            Database.MONGODB: "MongoDB (mongoose)",
            Database.POSTGRESQL: "PostgreSQL (sequelize + pg)",
        }
        return descriptions[self]


class Frontend(str, Enum):
    """Frontend framework; rendered under ``client/`` for fullstack projects."""

    NONE = "none"
    REACT = "react"
    VUE = "vue"


class Authentication(str, Enum):
    """Authentication strategy wired into the server entry point."""

    NONE = "none"
    JWT = "jwt"


class Bundler(str, Enum):
    """Frontend bundler. Only Vite is supported."""

    VITE = "vite"


class ProjectShape(str, Enum):
    """
    Overall shape of the project, derived from backend/frontend choices.

    All conditional structure (directories, manifests, next-step hints)
    branches on the shape instead of re-checking individual fields.
    """

    BACKEND_ONLY = "backend-only"
    FRONTEND_ONLY = "frontend-only"
    FULLSTACK = "fullstack"


# =============================================================================
# Main Configuration Model
# =============================================================================

class ProjectConfig(BaseModel):
    """
    Complete, immutable configuration for one generation run.

    The configuration can be:
    - Built interactively via CLI prompts
    - Loaded from a TOML file with ``from_toml``
    - Constructed programmatically via the Python API

    Attributes
    ----------
    name : str
        Project name; also the target directory name and the manifest name.

    language : Language
        JavaScript or TypeScript sources.

    backend : Backend
        Server framework, or ``none`` for frontend-only projects.

    database : Database
        Database client/ORM to configure. Requires a backend.

    middleware : tuple[str, ...]
        Middleware names, each drawn from ``backend.middleware_choices``.

    frontend : Frontend
        Frontend framework, or ``none`` for backend-only projects.

    authentication : Authentication
        Auth strategy. Forced to ``none`` when there is no backend.

    bundler : Bundler
        Always ``vite``.

    git_init : bool
        Run ``git init`` after generation.

    install_deps : bool
        Run ``npm install`` after generation.

    output_dir : Path
        Directory in which the project directory is created.

    Examples
    --------
    >>> config = ProjectConfig(
    ...     name="shop",
    ...     backend=Backend.FASTIFY,
    ...     middleware=("cors",),
    ...     frontend=Frontend.VUE,
    ... )
    >>> config.shape
    <ProjectShape.FULLSTACK: 'fullstack'>
    """

    model_config = ConfigDict(frozen=True)

    # -------------------------------------------------------------------------
    # Required Fields
    # -------------------------------------------------------------------------
    name: Annotated[str, Field(
        description="Project name (npm package name rules)",
        min_length=1,
        max_length=214,
    )]

    # -------------------------------------------------------------------------
    # Fields with Defaults
    # -------------------------------------------------------------------------
    language: Language = Field(
        default=Language.JAVASCRIPT,
        description="Source language",
    )
    backend: Backend = Field(
        default=Backend.EXPRESS,
        description="Backend framework",
    )
    database: Database = Field(
        default=Database.NONE,
        description="Database (requires a backend)",
    )
    middleware: tuple[str, ...] = Field(
        default=(),
        description="Selected middleware names",
    )
    frontend: Frontend = Field(
        default=Frontend.NONE,
        description="Frontend framework",
    )
    authentication: Authentication = Field(
        default=Authentication.NONE,
        description="Authentication strategy (requires a backend)",
    )
    bundler: Bundler = Field(
        default=Bundler.VITE,
        description="Frontend bundler",
    )
    git_init: bool = Field(
        default=False,
        description="Initialize a git repository after generation",
    )
    install_deps: bool = Field(
        default=False,
        description="Run npm install after generation",
    )
    output_dir: Path = Field(
        default_factory=Path.cwd,
        description="Directory where the project will be created",
    )

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Strip surrounding whitespace; grammar is checked by the generator."""
        return v.strip()

    @field_validator("middleware", mode="before")
    @classmethod
    def normalize_middleware(cls, v: Any) -> tuple[str, ...]:
        """
        Accept any iterable of names, dropping duplicates but keeping order.
        """
        if v is None:
            return ()
        if isinstance(v, str):
            v = [v]
        seen: dict[str, None] = {}
        for item in v:
            seen.setdefault(str(item).strip().lower(), None)
        return tuple(seen)

    @model_validator(mode="before")
    @classmethod
    def drop_backend_only_fields(cls, data: Any) -> Any:
        """
        Clear authentication when no backend is selected.

        The database is left as given; a database without a backend fails
        validation in the generator.
        """
        if isinstance(data, dict):
            backend = data.get("backend")
            if backend in (Backend.NONE, "none"):
                data = {**data, "authentication": Authentication.NONE}
        return data

    @model_validator(mode="after")
    def validate_middleware_choices(self) -> ProjectConfig:
        """
        Reject middleware that does not belong to the selected backend.
        """
        allowed = self.backend.middleware_choices
        invalid = [m for m in self.middleware if m not in allowed]
        if invalid:
            msg = (
                f"Middleware {', '.join(invalid)} not available for backend "
                f"'{self.backend.value}'. Valid: {', '.join(allowed) or 'none'}"
            )
            raise ValueError(msg)
        return self

    # -------------------------------------------------------------------------
    # Computed Properties
    # -------------------------------------------------------------------------

    @property
    def has_backend(self) -> bool:
        return self.backend is not Backend.NONE

    @property
    def has_frontend(self) -> bool:
        return self.frontend is not Frontend.NONE

    @property
    def has_database(self) -> bool:
        return self.database is not Database.NONE

    @property
    def is_typescript(self) -> bool:
        return self.language is Language.TYPESCRIPT

    @property
    def ext(self) -> str:
        """Source file extension (``js`` or ``ts``)."""
        return self.language.ext

    @property
    def shape(self) -> ProjectShape:
        """
        Tagged project shape.

        Returns
        -------
        ProjectShape
            FRONTEND_ONLY without a backend, FULLSTACK with both, and
            BACKEND_ONLY otherwise.
        """
        if not self.has_backend:
            return ProjectShape.FRONTEND_ONLY
        if self.has_frontend:
            return ProjectShape.FULLSTACK
        return ProjectShape.BACKEND_ONLY

    @property
    def project_dir(self) -> Path:
        """
        Absolute path to the project directory.

        Returns
        -------
        Path
            ``output_dir / name``, resolved.
        """
        return (self.output_dir / self.name).resolve()

    @property
    def frontend_dir(self) -> Path:
        """Where the frontend is rendered: ``client/`` or the project root."""
        if self.shape is ProjectShape.FULLSTACK:
            return self.project_dir / "client"
        return self.project_dir

    # -------------------------------------------------------------------------
    # Serialization Methods
    # -------------------------------------------------------------------------

    def to_toml_dict(self) -> dict:
        """
        Convert config to a dictionary suitable for TOML serialization.

        Returns
        -------
        dict
            Configuration with enums as values and paths as strings.
        """
        data = self.model_dump(mode="json")
        data["middleware"] = list(data["middleware"])
        data["output_dir"] = str(data["output_dir"])
        return data

    @classmethod
    def from_toml(cls, path: Path, **overrides: Any) -> ProjectConfig:
        """
        Load configuration from a TOML file.

        Keys may sit at the top level or under a ``[nodehatch]`` table.
        Keyword overrides win over file values (the CLI passes flags here).

        Parameters
        ----------
        path : Path
            Path to the TOML configuration file.

        Returns
        -------
        ProjectConfig
            Validated configuration object.

        Raises
        ------
        FileNotFoundError
            If the config file doesn't exist.
        pydantic.ValidationError
            If the config file has invalid values.
        """
        with open(path, "rb") as f:
            data = tomllib.load(f)

        data = data.get("nodehatch", data)
        return cls(**{**data, **overrides})

    def to_toml(self, path: Path) -> None:
        """
        Write the configuration as a ``[nodehatch]`` table.

        ``output_dir`` is machine specific and is left out, so the file can
        be reused with ``from_toml`` (or ``nodehatch init --config``)
        anywhere.
        """
        data = self.to_toml_dict()
        del data["output_dir"]

        doc = tomlkit.document()
        doc.add(tomlkit.comment("nodehatch project settings"))
        doc.add("nodehatch", data)
        with path.open("w", encoding="utf-8") as f:
            f.write(tomlkit.dumps(doc))


# =============================================================================
# Render Context
# =============================================================================

class RenderContext(BaseModel):
    """
    Read-only bundle of values substituted into every template.

    Built once per generation run from the configuration and the resolver
    output. Templates receive ``as_template_vars()``, a fresh dict per call,
    so no render can leak changes into another.
    """

    model_config = ConfigDict(frozen=True)

    project_name: str
    language: str
    backend: str
    database: str
    middleware: tuple[str, ...]
    frontend: str
    authentication: str
    bundler: str
    ext: str
    is_typescript: bool
    scripts: dict[str, str]
    dependencies: dict[str, str]
    dev_dependencies: dict[str, str]

    def as_template_vars(self, **extra: Any) -> dict[str, Any]:
        """Template variables, optionally extended for a single render."""
        return {**self.model_dump(), **extra}


def validate_project_name(name: str) -> str:
    """
    Check a project name against the npm package-name grammar.

    Parameters
    ----------
    name : str
        Candidate name, e.g. ``demo-api`` or ``@acme/web``.

    Returns
    -------
    str
        The name, unchanged.

    Raises
    ------
    ValidationError
        If the name has uppercase letters, spaces or disallowed symbols.
    """
    if not PROJECT_NAME_PATTERN.match(name):
        msg = f"Invalid project name '{name}' (follow npm package naming rules)"
        raise ValidationError(msg)
    return name
