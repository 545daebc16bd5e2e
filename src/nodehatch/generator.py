"""
nodehatch.generator - Core Project Generation Logic
===================================================

This module contains the generation pipeline. It turns a ``ProjectConfig``
into a Node.js project on disk by scaffolding directories, rendering
template groups, resolving ``package.json`` dependencies and wiring
authentication into the server entry point.

Architecture
------------
The pipeline is an explicit, ordered list of ``Task`` records, each with a
name, a state, an optional predicate over the configuration, and an async
effect. A single runner (``ProjectGenerator.run``) walks the list:

    1. Validating            - name grammar, cross-field rules, target dir
    2. Scaffolding           - directory skeleton for the project shape
    3. Generating            - fan-out: manifest, .gitignore, .env, server,
                               tsconfig; then db config, middleware, auth
    4. FrontendGenerating    - frontend template group + frontend manifest
    5. GitInit               - ``git init`` (best effort)
    6. DependencyInstall     - ``npm install`` (best effort)

Tasks whose predicate is false are skipped. Any failure outside the two
best-effort tasks aborts the run with a ``TaskFailedError`` naming the task.
Nothing is rolled back: a failed run leaves whatever it wrote on disk.

Concurrency
-----------
Everything runs on one asyncio event loop. File I/O goes through
``asyncio.to_thread``. The independent renders of the Generating step are
gathered together and the first failure aborts the group; the database,
middleware and auth steps only start after that join, because they rely on
the server file already being on disk.

Usage Example
-------------
>>> from nodehatch.generator import create_project
>>> from nodehatch.models import Backend, Database, ProjectConfig
>>>
>>> config = ProjectConfig(
...     name="demo-api",
...     backend=Backend.EXPRESS,
...     database=Database.MONGODB,
... )
>>> result = create_project(config)
>>> print(result.project_path)
/current/dir/demo-api

See Also
--------
- models.py: Configuration data models
- resolver.py: Dependency resolution
- renderer.py: Template rendering
- patcher.py: Idempotent source patching
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel

from nodehatch.errors import (
    ExternalProcessError,
    NodehatchError,
    TaskFailedError,
    ValidationError,
)
from nodehatch.models import (
    Authentication,
    Database,
    ProjectShape,
    RenderContext,
    validate_project_name,
)
from nodehatch.patcher import auth_insertions, integrate_feature
from nodehatch.renderer import TemplateRenderer, TemplateStore
from nodehatch.resolver import frontend_versions, resolve


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine
    from pathlib import Path
    from typing import Any

    from nodehatch.models import ProjectConfig
    from nodehatch.resolver import ResolvedDependencies


# =============================================================================
# Module-Level Configuration
# =============================================================================

console = Console()
logger = logging.getLogger(__name__)

GITIGNORE_ENTRIES = ("node_modules", ".env", "dist", "coverage", ".DS_Store")

BACKEND_DIRECTORIES = ("src", "src/config", "src/routes", "src/middlewares")

MONGO_ENV = {"MONGO_URI": "mongodb://localhost:27017/yourdbname"}

POSTGRES_ENV = {
    "PG_HOST": "localhost",
    "PG_PORT": "5432",
    "PG_USER": "youruser",
    "PG_PASSWORD": "yourpassword",
    "PG_DATABASE": "yourdb",
}

JWT_ENV = {"JWT_SECRET": "change-me"}


# =============================================================================
# States, Tasks and Results
# =============================================================================

class GenerationState(str, Enum):
    """States of a generation run, in pipeline order."""

    PENDING = "pending"
    VALIDATING = "validating"
    SCAFFOLDING = "scaffolding"
    GENERATING = "generating"
    FRONTEND_GENERATING = "frontend-generating"
    GIT_INIT = "git-init"
    DEPENDENCY_INSTALL = "dependency-install"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Task:
    """
    One pipeline step.

    Attributes
    ----------
    name : str
        Human-readable title, also used in error messages.

    state : GenerationState
        State the run is in while this task executes.

    effect : Callable[[ProjectGenerator], Awaitable[None]]
        The work itself.

    predicate : Callable[[ProjectConfig], bool] | None
        Task runs only if this returns True. ``None`` means always.

    best_effort : bool
        If True, an ``ExternalProcessError`` becomes a warning instead of
        failing the run.
    """

    name: str
    state: GenerationState
    effect: Callable[[ProjectGenerator], Awaitable[None]]
    predicate: Callable[[ProjectConfig], bool] | None = None
    best_effort: bool = False

    def enabled(self, config: ProjectConfig) -> bool:
        return self.predicate is None or self.predicate(config)


@dataclass
class GenerationResult:
    """
    Result of a project generation run.

    Attributes
    ----------
    success : bool
        Whether every required task completed.

    project_path : Path
        Absolute path to the project directory.

    state : GenerationState
        Final state (``DONE`` or ``FAILED``).

    files_created : list[Path]
        Files written, in the order they were written.

    skipped : list[str]
        Names of tasks whose predicate disabled them.

    warnings : list[str]
        Non-fatal problems (failed git init or npm install).

    errors : list[str]
        The fatal error, if the run failed.
    """

    success: bool
    project_path: Path
    state: GenerationState = GenerationState.PENDING
    files_created: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


# =============================================================================
# Pure Helpers
# =============================================================================

def validate_config(config: ProjectConfig, *, force: bool = False) -> None:
    """
    Enforce the business rules a configuration must satisfy.

    Parameters
    ----------
    config : ProjectConfig
        Configuration to check.

    force : bool, default=False
        Allow generating into an existing, non-empty directory.

    Raises
    ------
    ValidationError
        If the name is invalid, a database is chosen without a backend,
        neither backend nor frontend is chosen, or the target directory is
        in the way.
    """
    validate_project_name(config.name)

    if config.has_database and not config.has_backend:
        raise ValidationError("Database requires a backend framework")

    if not config.has_backend and not config.has_frontend:
        raise ValidationError("Projects without a backend must select a frontend framework")

    target = config.project_dir
    if target.exists() and not target.is_dir():
        raise ValidationError(f"'{target}' exists and is not a directory")

    if target.is_dir() and any(target.iterdir()) and not force:
        raise ValidationError(
            f"Directory '{target}' already exists and is not empty. "
            "Use a different name or pass --force to generate into it."
        )


def get_directories(config: ProjectConfig) -> list[str]:
    """
    Directories implied by the configuration, relative to the project root.

    Returns
    -------
    list[str]
        Backend dirs (plus ``types`` for TypeScript), ``client`` for
        fullstack projects, ``public`` for frontend-only projects.
    """
    dirs: list[str] = []

    if config.has_backend:
        dirs.extend(BACKEND_DIRECTORIES)
        if config.is_typescript:
            dirs.append("types")

    if config.shape is ProjectShape.FULLSTACK:
        dirs.append("client")

    if config.shape is ProjectShape.FRONTEND_ONLY:
        dirs.append("public")

    return dirs


def build_env_content(config: ProjectConfig) -> str:
    """Contents of ``.env`` for a backend project."""
    variables = {"PORT": "3000", "NODE_ENV": "development"}

    if config.database is Database.MONGODB:
        variables.update(MONGO_ENV)
    elif config.database is Database.POSTGRESQL:
        variables.update(POSTGRES_ENV)

    if config.authentication is Authentication.JWT:
        variables.update(JWT_ENV)

    return "".join(f"{key}={value}\n" for key, value in variables.items())


def strip_env_values(content: str) -> str:
    """Turn every ``KEY=value`` line into ``KEY=`` (for ``.env.example``)."""
    return re.sub(r"=.*$", "=", content, flags=re.MULTILINE)


def build_render_context(
    config: ProjectConfig,
    deps: ResolvedDependencies,
) -> RenderContext:
    """Assemble the read-only context shared by every template render."""
    return RenderContext(
        project_name=config.name,
        language=config.language.value,
        backend=config.backend.value,
        database=config.database.value,
        middleware=config.middleware,
        frontend=config.frontend.value,
        authentication=config.authentication.value,
        bundler=config.bundler.value,
        ext=config.ext,
        is_typescript=config.is_typescript,
        scripts=deps.scripts,
        dependencies=deps.dependencies,
        dev_dependencies=deps.dev_dependencies,
    )


def next_steps(config: ProjectConfig) -> list[str]:
    """
    Command hints printed after a successful run.

    Returns
    -------
    list[str]
        Lines to show, branching on project shape and language.
    """
    steps = [f"cd {config.name}"]

    if config.shape is ProjectShape.FRONTEND_ONLY:
        steps += [
            "npm install   # Install dependencies",
            "npm run dev   # Start development server",
        ]
    elif config.shape is ProjectShape.FULLSTACK:
        steps += [
            "cd client     # Go to frontend directory",
            "npm install   # Install frontend dependencies",
            "npm run dev   # Start frontend server",
            "",
            "# In root directory:",
            "npm install   # Install backend dependencies",
        ]
        if config.is_typescript:
            steps.append("npm run dev   # Start backend server")
        else:
            steps.append("npm start     # Start backend server")
    elif config.is_typescript:
        steps += [
            "npm run dev   # Start development server",
            "npm run build # Build for production",
        ]
    else:
        steps.append("npm start     # Start application")

    return steps


async def run_command(
    command: list[str],
    cwd: Path,
    *,
    inherit_stdio: bool = False,
) -> None:
    """
    Run an external command to completion.

    Parameters
    ----------
    command : list[str]
        Program and arguments.

    cwd : Path
        Working directory.

    inherit_stdio : bool, default=False
        Stream output to the terminal instead of discarding it.

    Raises
    ------
    ExternalProcessError
        If the program is missing or exits non-zero.
    """
    stream = None if inherit_stdio else asyncio.subprocess.DEVNULL
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            stdout=stream,
            stderr=stream,
        )
    except OSError as e:
        raise ExternalProcessError(command) from e

    returncode = await process.wait()
    if returncode != 0:
        raise ExternalProcessError(command, returncode)


async def _fan_out(*jobs: Coroutine[Any, Any, Any]) -> None:
    """Run jobs concurrently; the first failure cancels the rest and propagates."""
    tasks = [asyncio.ensure_future(job) for job in jobs]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


# =============================================================================
# Generator
# =============================================================================

class ProjectGenerator:
    """
    Runs the generation pipeline for one configuration.

    Parameters
    ----------
    config : ProjectConfig
        What to generate.

    store : TemplateStore | None
        Template source. Defaults to the templates shipped with nodehatch.

    verbose : bool, default=True
        Print progress to the console.

    force : bool, default=False
        Allow generating into an existing, non-empty directory.
    """

    def __init__(
        self,
        config: ProjectConfig,
        *,
        store: TemplateStore | None = None,
        verbose: bool = True,
        force: bool = False,
    ) -> None:
        self.config = config
        self.renderer = TemplateRenderer(store)
        self.verbose = verbose
        self.force = force
        self.project_dir = config.project_dir
        self.deps = resolve(config)
        self.context = build_render_context(config, self.deps)
        self.result = GenerationResult(success=False, project_path=self.project_dir)

    # -- Runner ------------------------------------------------------------

    async def run(self, pipeline: tuple[Task, ...] | None = None) -> GenerationResult:
        """
        Execute every enabled task in order.

        Returns
        -------
        GenerationResult
            Outcome of the run, with ``state == DONE``.

        Raises
        ------
        TaskFailedError
            If a required task fails. ``self.result`` records the failure.
        """
        for task in pipeline or PIPELINE:
            if not task.enabled(self.config):
                self.result.skipped.append(task.name)
                continue

            self.result.state = task.state
            self._print(f"[bold]{task.name}...[/]")

            try:
                await task.effect(self)
            except ExternalProcessError as e:
                if not task.best_effort:
                    self._fail(task, e)
                    raise TaskFailedError(task.name, e) from e
                self.result.warnings.append(f"{task.name} failed: {e}")
                self._print(f"  [yellow]⚠[/] {task.name} failed: {e}")
                continue
            except Exception as e:
                self._fail(task, e)
                raise TaskFailedError(task.name, e) from e

            self._print("  [green]✓[/] done")

        self.result.state = GenerationState.DONE
        self.result.success = True
        return self.result

    def _fail(self, task: Task, error: BaseException) -> None:
        logger.debug("Task %r failed", task.name, exc_info=error)
        self.result.state = GenerationState.FAILED
        self.result.errors.append(f"{task.name}: {error}")

    def _print(self, message: str) -> None:
        if self.verbose:
            console.print(message)

    def _track(self, *paths: Path | None) -> None:
        self.result.files_created.extend(p for p in paths if p is not None)

    def _vars(self, **extra: Any) -> dict[str, Any]:
        return self.context.as_template_vars(**extra)

    # -- Validating / Scaffolding -------------------------------------------

    async def validate(self) -> None:
        await asyncio.to_thread(validate_config, self.config, force=self.force)

    async def create_structure(self) -> None:
        await asyncio.to_thread(self.project_dir.mkdir, parents=True, exist_ok=True)
        await asyncio.gather(*(
            asyncio.to_thread((self.project_dir / d).mkdir, parents=True, exist_ok=True)
            for d in get_directories(self.config)
        ))

    # -- Generating -----------------------------------------------------------

    async def generate_code(self) -> None:
        """
        Render the core files, then the steps that depend on them.

        The first group is independent and runs concurrently. Database
        config, middleware files and authentication run after the join.
        """
        config = self.config
        jobs = [self.generate_gitignore()]

        if config.has_backend:
            jobs += [self.generate_package_json(), self.generate_env(), self.generate_server()]

        if config.is_typescript:
            jobs.append(self.generate_tsconfig())

        await _fan_out(*jobs)

        if not config.has_backend:
            return

        if config.has_database:
            await self.generate_db_config()

        if config.middleware:
            await self.generate_middleware_files()

        if auth_insertions(config):
            await self.generate_authentication()

    async def generate_package_json(self) -> None:
        path = await self.renderer.render_file(
            "shared/package.json", self.project_dir / "package.json", self._vars()
        )
        self._track(path)

    async def generate_gitignore(self) -> None:
        path = self.project_dir / ".gitignore"
        await asyncio.to_thread(
            path.write_text, "\n".join(GITIGNORE_ENTRIES) + "\n", encoding="utf-8"
        )
        self._track(path)

    async def generate_env(self) -> None:
        content = build_env_content(self.config)
        env_path = self.project_dir / ".env"
        example_path = self.project_dir / ".env.example"
        await asyncio.to_thread(env_path.write_text, content, encoding="utf-8")
        await asyncio.to_thread(
            example_path.write_text, strip_env_values(content), encoding="utf-8"
        )
        self._track(env_path, example_path)

    async def generate_server(self) -> None:
        ext = self.config.ext
        path = await self.renderer.render_file(
            f"{self.config.backend.value}/server",
            self.project_dir / "src" / f"server.{ext}",
            self._vars(),
            ext=ext,
        )
        self._track(path)

    async def generate_tsconfig(self) -> None:
        path = await self.renderer.render_file(
            "shared/tsconfig.json", self.project_dir / "tsconfig.json", self._vars()
        )
        self._track(path)

    async def generate_db_config(self) -> None:
        """Database connection config plus a ``User`` model."""
        ext = self.config.ext
        src = self.project_dir / "src"

        config_path = await self.renderer.render_file(
            f"shared/db/{self.config.database.value}",
            src / "config" / f"db.{ext}",
            self._vars(),
            ext=ext,
        )
        model_path = await self.renderer.render_file(
            "shared/models/User",
            src / "models" / f"User.{ext}",
            self._vars(),
            ext=ext,
        )
        self._track(config_path, model_path)

    async def generate_middleware_files(self) -> None:
        """
        One ``src/middlewares/<name>.<ext>`` per selected middleware.

        Backends without a middleware template simply get none.
        """
        ext = self.config.ext
        unit = f"{self.config.backend.value}/middleware"

        for name in self.config.middleware:
            path = await self.renderer.render_file(
                unit,
                self.project_dir / "src" / "middlewares" / f"{name}.{ext}",
                self._vars(middleware_name=name),
                ext=ext,
                required=False,
            )
            self._track(path)

    async def generate_authentication(self) -> None:
        """Render the auth template group, then wire it into the server."""
        config = self.config
        unit = (
            f"auth/{config.authentication.value}/backend/"
            f"{config.backend.value}/{config.language.value}"
        )

        written = await self.renderer.render_tree(unit, self.project_dir / "src", self._vars())
        self._track(*written)

        server = self.project_dir / "src" / f"server.{config.ext}"
        await asyncio.to_thread(integrate_feature, server, auth_insertions(config))

    # -- FrontendGenerating ---------------------------------------------------

    async def generate_frontend(self) -> None:
        """
        Render the frontend template group and its manifest.

        Frontend-only projects render straight into the project root, so
        ``public/`` lands at the root; fullstack projects render into
        ``client/``.
        """
        framework = self.config.frontend.value
        frontend_dir = self.config.frontend_dir
        unit = f"frontend/{framework}"

        await asyncio.to_thread(frontend_dir.mkdir, parents=True, exist_ok=True)

        if self.renderer.store.directory(unit) is not None:
            written = await self.renderer.render_tree(
                unit, frontend_dir, self._vars(), exclude=("package.json.j2",)
            )
            self._track(*written)

        await self.generate_frontend_package_json(frontend_dir, framework)

    async def generate_frontend_package_json(self, target_dir: Path, framework: str) -> None:
        """
        Frontend ``package.json`` built from the narrow version subset.

        When the framework ships no manifest template, fullstack projects
        skip it and frontend-only projects fall back to the shared manifest
        so the project root always has one.
        """
        path = await self.renderer.render_file(
            f"frontend/{framework}/package.json",
            target_dir / "package.json",
            {
                "project_name": self.config.name,
                "framework": framework,
                "is_typescript": self.config.is_typescript,
                "versions": frontend_versions(),
            },
            required=False,
        )

        if path is None and self.config.shape is ProjectShape.FRONTEND_ONLY:
            await self.generate_package_json()
            return

        self._track(path)

    # -- GitInit / DependencyInstall -------------------------------------------

    async def initialize_git(self) -> None:
        await run_command(["git", "init"], self.project_dir)
        self._print("  [green]✓[/] Git repository initialized")

    async def install_dependencies(self) -> None:
        await run_command(
            ["npm", "install", "--quiet"], self.project_dir, inherit_stdio=True
        )


# =============================================================================
# Pipeline Declaration
# =============================================================================

PIPELINE: tuple[Task, ...] = (
    Task(
        "Validating project configuration",
        GenerationState.VALIDATING,
        ProjectGenerator.validate,
    ),
    Task(
        "Creating directory structure",
        GenerationState.SCAFFOLDING,
        ProjectGenerator.create_structure,
    ),
    Task(
        "Generating project files",
        GenerationState.GENERATING,
        ProjectGenerator.generate_code,
    ),
    Task(
        "Generating frontend",
        GenerationState.FRONTEND_GENERATING,
        ProjectGenerator.generate_frontend,
        predicate=lambda c: c.has_frontend,
    ),
    Task(
        "Initializing version control",
        GenerationState.GIT_INIT,
        ProjectGenerator.initialize_git,
        predicate=lambda c: c.git_init,
        best_effort=True,
    ),
    Task(
        "Installing dependencies",
        GenerationState.DEPENDENCY_INSTALL,
        ProjectGenerator.install_dependencies,
        predicate=lambda c: c.install_deps,
        best_effort=True,
    ),
)


# =============================================================================
# Main Generation Function
# =============================================================================

async def generate_project(
    config: ProjectConfig,
    *,
    store: TemplateStore | None = None,
    verbose: bool = True,
    force: bool = False,
) -> GenerationResult:
    """
    Async entry point: generate a project and report the outcome.

    Parameters
    ----------
    config : ProjectConfig
        Complete project configuration.

    store : TemplateStore | None
        Template source override (tests use a temporary tree).

    verbose : bool, default=True
        If True, display progress information to the console.

    force : bool, default=False
        Generate into an existing, non-empty directory.

    Returns
    -------
    GenerationResult
        Result object containing success status and details.

    Raises
    ------
    TaskFailedError
        If a required task fails. Partial output stays on disk.
    """
    generator = ProjectGenerator(config, store=store, verbose=verbose, force=force)

    if verbose:
        console.print()
        console.print(
            Panel(
                f"[bold blue]Creating project:[/] [green]{config.name}[/]\n"
                f"[dim]Shape: {config.shape.value} | "
                f"Language: {config.language.value} | "
                f"Backend: {config.backend.value} | "
                f"Frontend: {config.frontend.value}[/]",
                title="[bold]nodehatch[/]",
                border_style="blue",
            )
        )
        console.print()

    try:
        result = await generator.run()
    except NodehatchError as e:
        if verbose:
            console.print("\n[bold red]💥 Generation failed:[/]")
            console.print(f"[red]{e}[/]")
        raise

    if verbose:
        steps = "\n".join(f"  {line}" if line else "" for line in next_steps(config))
        reminder = ""
        if config.has_database:
            reminder = "\n\n[yellow]⚠ Remember to configure your database connection in .env[/]"
        console.print()
        console.print(
            Panel(
                f"[bold green]🚀 Project ready![/]\n\n"
                f"[dim]Location:[/] {result.project_path}\n\n"
                f"[bold]Next steps:[/]\n{steps}{reminder}",
                title="[bold green]Success[/]",
                border_style="green",
            )
        )

    return result


def create_project(
    config: ProjectConfig,
    *,
    store: TemplateStore | None = None,
    verbose: bool = True,
    force: bool = False,
) -> GenerationResult:
    """
    Create a new Node.js project from the given configuration.

    Synchronous wrapper around ``generate_project`` for the CLI and for
    library callers without an event loop.

    See Also
    --------
    generate_project : The async implementation.
    """
    return asyncio.run(
        generate_project(config, store=store, verbose=verbose, force=force)
    )
