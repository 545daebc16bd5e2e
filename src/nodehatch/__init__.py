"""
nodehatch - Node.js Project Scaffolder
======================================

A CLI tool that generates ready-to-run Node.js projects: an Express or
Fastify server, a React or Vue frontend built with Vite, or both, in
JavaScript or TypeScript.

Features
--------
- **Three shapes**: backend-only, frontend-only or fullstack (``client/``)
- **Pinned versions**: every dependency comes from one version table
- **Database wiring**: MongoDB (mongoose) or PostgreSQL (sequelize + pg)
- **JWT auth**: routes and middleware patched into the server idempotently

Quick Start
-----------
```bash
# Install nodehatch
pip install nodehatch

# Create a new project interactively
nodehatch init my-api

# Or with options
nodehatch init my-api --backend fastify --database postgresql --ts --yes
```

Example
-------
>>> from nodehatch import ProjectConfig, create_project
>>> result = create_project(ProjectConfig(name="my-api"))
>>> result.success
True

Architecture
------------
- ``cli``: Typer-based command line interface
- ``generator``: The generation pipeline
- ``resolver``: package.json dependencies and scripts
- ``renderer``: Jinja2 template rendering
- ``patcher``: Idempotent source patching
- ``models``: Pydantic models for configuration
- ``errors``: Error hierarchy
- ``templates``: Template groups for generated files
"""

# =============================================================================
# Package Metadata
# =============================================================================
__version__ = "0.1.0"
__license__ = "MIT"

# =============================================================================
# Public API Exports
# =============================================================================

from nodehatch.errors import (
    ExternalProcessError,
    MissingTemplateError,
    NodehatchError,
    PatchAnchorMissingError,
    PatchTargetMissingError,
    TaskFailedError,
    ValidationError,
)
from nodehatch.generator import GenerationResult, create_project, generate_project
from nodehatch.models import ProjectConfig, ProjectShape
from nodehatch.resolver import ResolvedDependencies, resolve


__all__ = [
    "ExternalProcessError",
    "GenerationResult",
    "MissingTemplateError",
    "NodehatchError",
    "PatchAnchorMissingError",
    "PatchTargetMissingError",
    # Configuration models
    "ProjectConfig",
    "ProjectShape",
    "ResolvedDependencies",
    "TaskFailedError",
    "ValidationError",
    # Version info
    "__version__",
    # Core functions
    "create_project",
    "generate_project",
    "resolve",
]
