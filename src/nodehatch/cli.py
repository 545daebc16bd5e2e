"""
nodehatch.cli - Command Line Interface
======================================

This module provides the command-line interface for nodehatch using Typer.
Prompts are asked with questionary and results are shown with rich.

Architecture
------------
The CLI is structured around Typer's app pattern:

    app (main entry point)
    └── init     - Scaffold a new Node.js project

The command is both interactive (prompts for anything not given as a flag)
and scriptable (``--yes`` skips all prompts and uses defaults). A TOML file
passed with ``--config`` supplies values too; explicit flags win over it.

Usage Examples
--------------
Interactive mode:
    $ nodehatch init my-api

Non-interactive mode:
    $ nodehatch init my-api --backend fastify -m cors -m helmet --yes

Fullstack TypeScript project with JWT auth:
    $ nodehatch init shop --ts --frontend react --auth jwt --yes

See Also
--------
- generator.py: The generation pipeline
- models.py: Configuration data models
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated, Any

import questionary
import typer
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from nodehatch import __version__
from nodehatch.errors import NodehatchError
from nodehatch.generator import create_project
from nodehatch.models import (
    Authentication,
    Backend,
    Database,
    Frontend,
    Language,
    ProjectConfig,
)


# =============================================================================
# CLI Application Setup
# =============================================================================

app = typer.Typer(
    name="nodehatch",
    help="Interactive scaffolder for Node.js backend, frontend and fullstack projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=True,
)

console = Console()


def configure_logging(debug: bool) -> None:
    """Route ``nodehatch.*`` log records through rich."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=debug)],
        force=True,
    )


# =============================================================================
# Version Callback
# =============================================================================

def version_callback(value: bool) -> None:
    """
    Display version information and exit.

    Parameters
    ----------
    value : bool
        True if --version was passed.
    """
    if value:
        console.print(Panel(
            f"[bold green]nodehatch[/] version [cyan]{__version__}[/]\n\n"
            f"[dim]Node.js project scaffolder[/]\n"
            f"[dim]Backends: express, fastify | Frontends: react, vue[/]",
            border_style="green",
        ))
        raise typer.Exit()


# =============================================================================
# Interactive Prompts
# =============================================================================

def _ask(question: questionary.Question) -> Any:
    """Ask a question, aborting on Ctrl-C."""
    result = question.ask()
    if result is None:
        raise typer.Abort()
    return result


def prompt_language() -> Language:
    """
    Prompt for the source language.

    Returns
    -------
    Language
        The selected language.
    """
    return _ask(questionary.select(
        "Which language?",
        choices=[
            questionary.Choice(title="JavaScript", value=Language.JAVASCRIPT),
            questionary.Choice(title="TypeScript", value=Language.TYPESCRIPT),
        ],
        default=Language.JAVASCRIPT,
    ))


def prompt_backend() -> Backend:
    """
    Prompt for the backend framework.

    Returns
    -------
    Backend
        The selected backend, possibly ``NONE``.
    """
    choices = [
        questionary.Choice(title=backend.description, value=backend)
        for backend in Backend
    ]
    return _ask(questionary.select(
        "Backend framework?",
        choices=choices,
        default=Backend.EXPRESS,
    ))


def prompt_middleware(backend: Backend) -> list[str]:
    """Prompt for middleware offered by ``backend``."""
    choices = [questionary.Choice(name, value=name) for name in backend.middleware_choices]
    if not choices:
        return []
    return _ask(questionary.checkbox("Select middleware:", choices=choices))


def prompt_database() -> Database:
    choices = [
        questionary.Choice(title=database.description, value=database)
        for database in Database
    ]
    return _ask(questionary.select(
        "Database?",
        choices=choices,
        default=Database.NONE,
    ))


def prompt_frontend(backend: Backend) -> Frontend:
    """
    Prompt for the frontend framework.

    Without a backend a frontend is mandatory, so ``none`` is not offered.

    Parameters
    ----------
    backend : Backend
        Backend already chosen.

    Returns
    -------
    Frontend
        The selected frontend.
    """
    options = [f for f in Frontend if backend is not Backend.NONE or f is not Frontend.NONE]
    choices = [
        questionary.Choice(title=f.value.capitalize(), value=f)
        for f in options
    ]
    return _ask(questionary.select(
        "Frontend framework?",
        choices=choices,
        default=options[0],
    ))


def prompt_authentication() -> Authentication:
    return _ask(questionary.select(
        "Authentication?",
        choices=[
            questionary.Choice(title="None", value=Authentication.NONE),
            questionary.Choice(title="JWT (jsonwebtoken + bcryptjs)", value=Authentication.JWT),
        ],
        default=Authentication.NONE,
    ))


def prompt_confirm(message: str, default: bool) -> bool:
    return _ask(questionary.confirm(message, default=default))


# =============================================================================
# Option Parsing Helpers
# =============================================================================

def _parse_enum(enum_cls: type, value: str, label: str) -> Any:
    """
    Convert a flag value to an enum member or exit with an error.

    Raises
    ------
    typer.Exit
        With code 1 if ``value`` is not a member.
    """
    try:
        return enum_cls(value.lower())
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls)
        rprint(f"[red]Error:[/] Invalid {label} '{value}'. Valid: {valid}")
        raise typer.Exit(1)


def _show_summary(config: ProjectConfig) -> None:
    table = Table(title="Project Configuration", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Name", config.name)
    table.add_row("Shape", config.shape.value)
    table.add_row("Language", config.language.value)
    table.add_row("Backend", config.backend.value)
    table.add_row("Middleware", ", ".join(config.middleware) or "none")
    table.add_row("Database", config.database.value)
    table.add_row("Frontend", config.frontend.value)
    table.add_row("Authentication", config.authentication.value)
    table.add_row("Git", "yes" if config.git_init else "no")
    table.add_row("npm install", "yes" if config.install_deps else "no")

    console.print()
    console.print(table)
    console.print()


# =============================================================================
# Main Application Callback
# =============================================================================

@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    [bold]nodehatch[/] - Node.js project scaffolder.

    Generates [cyan]express[/] or [cyan]fastify[/] servers, [cyan]react[/] or
    [cyan]vue[/] frontends, or both, in JavaScript or TypeScript.

    [bold]Quick Start:[/]

        nodehatch init my-api
    """


# =============================================================================
# Init Command
# =============================================================================

@app.command()
def init(
    name: Annotated[
        str,
        typer.Argument(help="Project name (npm package naming rules)"),
    ],
    language: Annotated[
        str | None,
        typer.Option("--language", "-l", help="Source language: javascript, typescript"),
    ] = None,
    ts: Annotated[
        bool,
        typer.Option("--ts", help="Shorthand for --language typescript"),
    ] = False,
    backend: Annotated[
        str | None,
        typer.Option("--backend", "-b", help="Backend: express, fastify, none"),
    ] = None,
    middleware: Annotated[
        list[str] | None,
        typer.Option("--middleware", "-m", help="Middleware to include (repeatable)"),
    ] = None,
    database: Annotated[
        str | None,
        typer.Option("--database", "-d", help="Database: none, mongodb, postgresql"),
    ] = None,
    frontend: Annotated[
        str | None,
        typer.Option("--frontend", "-f", help="Frontend: none, react, vue"),
    ] = None,
    auth: Annotated[
        str | None,
        typer.Option("--auth", "-a", help="Authentication: none, jwt"),
    ] = None,
    output_dir: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Directory to create project in (default: current directory)",
        ),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="TOML file with project settings"),
    ] = None,
    save_config: Annotated[
        Path | None,
        typer.Option("--save-config", help="Write the chosen settings to a TOML file"),
    ] = None,
    git: Annotated[
        bool | None,
        typer.Option("--git/--no-git", help="Initialize a git repository"),
    ] = None,
    install: Annotated[
        bool | None,
        typer.Option("--install/--no-install", help="Run npm install after generation"),
    ] = None,
    force: Annotated[
        bool,
        typer.Option("--force", help="Generate into an existing, non-empty directory"),
    ] = False,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip all prompts, use defaults"),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Show debug logging"),
    ] = False,
) -> None:
    """
    Scaffold a new Node.js project.

    [bold]Examples:[/]

        # Interactive mode (prompts for all options)
        nodehatch init my-api

        # Express API with MongoDB, no prompts
        nodehatch init my-api --database mongodb --yes

        # Frontend-only Vue app
        nodehatch init site --backend none --frontend vue --yes
    """
    configure_logging(debug)

    should_prompt = not yes and config_file is None

    # Explicit flags become overrides; anything left unset is prompted for
    # or falls back to the model defaults.
    values: dict[str, Any] = {"name": name}

    if ts:
        values["language"] = Language.TYPESCRIPT
    elif language:
        values["language"] = _parse_enum(Language, language, "language")
    elif should_prompt:
        values["language"] = prompt_language()

    if backend:
        values["backend"] = _parse_enum(Backend, backend, "backend")
    elif should_prompt:
        values["backend"] = prompt_backend()

    chosen_backend = values.get("backend", Backend.EXPRESS)

    if middleware:
        values["middleware"] = middleware
    elif should_prompt and chosen_backend is not Backend.NONE:
        values["middleware"] = prompt_middleware(chosen_backend)

    if database:
        values["database"] = _parse_enum(Database, database, "database")
    elif should_prompt and chosen_backend is not Backend.NONE:
        values["database"] = prompt_database()

    if frontend:
        values["frontend"] = _parse_enum(Frontend, frontend, "frontend")
    elif should_prompt:
        values["frontend"] = prompt_frontend(chosen_backend)

    if auth:
        values["authentication"] = _parse_enum(Authentication, auth, "authentication")
    elif should_prompt and chosen_backend is not Backend.NONE:
        values["authentication"] = prompt_authentication()

    if git is not None:
        values["git_init"] = git
    elif should_prompt:
        values["git_init"] = prompt_confirm("Initialize a git repository?", default=True)

    if install is not None:
        values["install_deps"] = install
    elif should_prompt:
        values["install_deps"] = prompt_confirm("Install dependencies now?", default=False)

    if output_dir is not None:
        values["output_dir"] = output_dir

    # Build the configuration
    try:
        if config_file is not None:
            config = ProjectConfig.from_toml(config_file, **values)
        else:
            config = ProjectConfig(**values)
    except FileNotFoundError:
        rprint(f"[red]Error:[/] Config file not found: {config_file}")
        raise typer.Exit(1)
    except ValueError as e:
        rprint(f"[red]Error:[/] {e}")
        raise typer.Exit(1)

    if should_prompt:
        _show_summary(config)
        if not prompt_confirm("Create project with these settings?", default=True):
            raise typer.Abort()

    if save_config is not None:
        config.to_toml(save_config)
        console.print(f"[green]✓[/] Settings saved to {save_config}")

    # Generation failures are already reported by the generator
    try:
        create_project(config, verbose=True, force=force)
    except NodehatchError:
        raise typer.Exit(1)


# =============================================================================
# Entry Point
# =============================================================================

if __name__ == "__main__":
    app()
