"""
nodehatch.resolver - Dependency Resolution
==========================================

Maps a ``ProjectConfig`` to the three blocks of the generated
``package.json``: ``dependencies``, ``devDependencies`` and ``scripts``.

Every version comes from ``DEPENDENCY_VERSIONS``, a read-only table loaded
at import time. Resolution is a pure function of the configuration; calling
``resolve`` twice with equal configurations gives equal results.

Usage Example
-------------
>>> from nodehatch.models import Backend, Database, ProjectConfig
>>> deps = resolve(ProjectConfig(name="api", database=Database.MONGODB))
>>> sorted(deps.dependencies)
['dotenv', 'express', 'mongoose']
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from nodehatch.models import Authentication, Backend, Database, Frontend


if TYPE_CHECKING:
    from collections.abc import Mapping

    from nodehatch.models import ProjectConfig


# =============================================================================
# Version Table
# =============================================================================

DEPENDENCY_VERSIONS: Mapping[str, str] = MappingProxyType({
    # Backends
    "express": "^4.18.2",
    "fastify": "^4.25.2",
    "dotenv": "^16.3.1",
    # Middleware
    "cors": "^2.8.5",
    "helmet": "^7.1.0",
    "morgan": "^1.10.0",
    "express-rate-limit": "^6.8.1",
    "@fastify/cors": "^8.2.1",
    "@fastify/helmet": "^11.0.0",
    "@fastify/rate-limit": "^8.0.1",
    # Databases
    "mongoose": "^8.0.3",
    "sequelize": "^6.37.1",
    "pg": "^8.11.3",
    # Authentication
    "jsonwebtoken": "^9.0.2",
    "bcryptjs": "^2.4.3",
    # Frontends
    "react": "^18.2.0",
    "react-dom": "^18.2.0",
    "react-router-dom": "^6.22.3",
    "vue": "^3.4.0",
    "vite": "^5.0.0",
    "@vitejs/plugin-react": "^4.2.1",
    "@vitejs/plugin-vue": "^5.0.4",
    # Tooling
    "nodemon": "^3.0.2",
    "typescript": "^5.2.2",
    "ts-node": "^10.9.1",
    "@vue/tsconfig": "^0.5.1",
    # Type definitions
    "@types/node": "^20.12.0",
    "@types/express": "^4.17.21",
    "@types/fastify": "^4.25.7",
    "@types/pg": "^8.10.8",
    "@types/jsonwebtoken": "^9.0.5",
    "@types/bcryptjs": "^2.4.6",
    "@types/react": "^18.2.0",
    "@types/react-dom": "^18.2.0",
})

# Middleware name -> npm package, per backend
MIDDLEWARE_PACKAGES: Mapping[Backend, Mapping[str, str]] = MappingProxyType({
    Backend.EXPRESS: MappingProxyType({
        "cors": "cors",
        "helmet": "helmet",
        "morgan": "morgan",
        "express-rate-limit": "express-rate-limit",
    }),
    Backend.FASTIFY: MappingProxyType({
        "cors": "@fastify/cors",
        "helmet": "@fastify/helmet",
        "rate-limit": "@fastify/rate-limit",
    }),
    Backend.NONE: MappingProxyType({}),
})

DATABASE_PACKAGES: Mapping[Database, tuple[str, ...]] = MappingProxyType({
    Database.NONE: (),
    Database.MONGODB: ("mongoose",),
    Database.POSTGRESQL: ("sequelize", "pg"),
})

FRONTEND_PACKAGES: Mapping[Frontend, tuple[str, ...]] = MappingProxyType({
    Frontend.NONE: (),
    Frontend.REACT: ("react", "react-dom"),
    Frontend.VUE: ("vue",),
})

AUTH_PACKAGES: Mapping[Authentication, tuple[str, ...]] = MappingProxyType({
    Authentication.NONE: (),
    Authentication.JWT: ("jsonwebtoken", "bcryptjs"),
})

# Type packages that only make sense alongside their runtime package
BACKEND_TYPE_PACKAGES: Mapping[Backend, tuple[str, ...]] = MappingProxyType({
    Backend.EXPRESS: ("@types/express",),
    Backend.FASTIFY: ("@types/fastify",),
    Backend.NONE: (),
})

DATABASE_TYPE_PACKAGES: Mapping[Database, tuple[str, ...]] = MappingProxyType({
    Database.NONE: (),
    Database.MONGODB: (),  # mongoose ships its own types
    Database.POSTGRESQL: ("@types/pg",),
})

AUTH_TYPE_PACKAGES: Mapping[Authentication, tuple[str, ...]] = MappingProxyType({
    Authentication.NONE: (),
    Authentication.JWT: ("@types/jsonwebtoken", "@types/bcryptjs"),
})

# Fallbacks used by the frontend manifest when the table lacks an entry
FRONTEND_VERSION_DEFAULTS: Mapping[str, str] = MappingProxyType({
    "react": "^18.2.0",
    "react-dom": "^18.2.0",
    "vue": "^3.4.0",
    "vite": "^5.0.0",
    "@vitejs/plugin-react": "^4.2.1",
    "@vitejs/plugin-vue": "^5.0.4",
})


# =============================================================================
# Result Data Class
# =============================================================================

@dataclass(frozen=True)
class ResolvedDependencies:
    """
    Output of ``resolve``.

    Attributes
    ----------
    dependencies : dict[str, str]
        Runtime packages, name -> semver range.

    dev_dependencies : dict[str, str]
        Development packages, name -> semver range.

    scripts : dict[str, str]
        npm scripts, name -> command.
    """

    dependencies: dict[str, str] = field(default_factory=dict)
    dev_dependencies: dict[str, str] = field(default_factory=dict)
    scripts: dict[str, str] = field(default_factory=dict)


# =============================================================================
# Resolution
# =============================================================================

def _pick(names: list[str], table: Mapping[str, str]) -> dict[str, str]:
    """Look up versions, dropping names the table has no version for."""
    resolved = {name: table.get(name) for name in names}
    return {name: version for name, version in resolved.items() if version is not None}


def middleware_package(backend: Backend, name: str) -> str:
    """
    npm package for a middleware name under the given backend.

    Raises
    ------
    ValueError
        If the middleware is not offered for the backend.
    """
    packages = MIDDLEWARE_PACKAGES[backend]
    if name not in packages:
        msg = f"Middleware '{name}' is not available for backend '{backend.value}'"
        raise ValueError(msg)
    return packages[name]


def get_dependencies(
    config: ProjectConfig,
    table: Mapping[str, str] = DEPENDENCY_VERSIONS,
) -> dict[str, str]:
    """
    Runtime dependencies for the configuration.

    Parameters
    ----------
    config : ProjectConfig
        Project configuration.

    table : Mapping[str, str]
        Version table; overridable so table gaps can be exercised.

    Returns
    -------
    dict[str, str]
        Package name -> version, without entries missing from the table.
    """
    names: list[str] = []

    if config.has_backend:
        names.append("dotenv")
        names.append(config.backend.value)
        names.extend(middleware_package(config.backend, mw) for mw in config.middleware)
        names.extend(DATABASE_PACKAGES[config.database])
        names.extend(AUTH_PACKAGES[config.authentication])
    elif config.has_frontend:
        # Frontend-only projects carry the framework in the root manifest
        names.extend(FRONTEND_PACKAGES[config.frontend])

    return _pick(names, table)


def get_dev_dependencies(
    config: ProjectConfig,
    table: Mapping[str, str] = DEPENDENCY_VERSIONS,
) -> dict[str, str]:
    """
    Development dependencies for the configuration.

    TypeScript projects get the compiler, ``ts-node`` and ``@types/*``
    packages mirroring the runtime selection. A type package is never added
    when its runtime package was not selected.
    """
    names = ["nodemon"]

    if config.is_typescript:
        names.extend(["typescript", "ts-node", "@types/node"])
        if config.has_backend:
            names.extend(BACKEND_TYPE_PACKAGES[config.backend])
            names.extend(DATABASE_TYPE_PACKAGES[config.database])
            names.extend(AUTH_TYPE_PACKAGES[config.authentication])

    return _pick(names, table)


def get_npm_scripts(config: ProjectConfig) -> dict[str, str]:
    """npm scripts for the server entry point."""
    scripts = {
        "start": "node src/server.js",
        "dev": "nodemon src/server.js",
    }

    if config.is_typescript:
        scripts["build"] = "tsc"
        scripts["start"] = "node dist/server.js"
        scripts["dev"] = "nodemon src/server.ts"
        scripts["start:prod"] = "npm run build && npm start"

    return scripts


def resolve(
    config: ProjectConfig,
    table: Mapping[str, str] = DEPENDENCY_VERSIONS,
) -> ResolvedDependencies:
    """
    Resolve dependencies, dev dependencies and scripts for a project.

    Parameters
    ----------
    config : ProjectConfig
        Project configuration.

    table : Mapping[str, str]
        Version table to resolve against.

    Returns
    -------
    ResolvedDependencies
        The three manifest blocks.
    """
    return ResolvedDependencies(
        dependencies=get_dependencies(config, table),
        dev_dependencies=get_dev_dependencies(config, table),
        scripts=get_npm_scripts(config),
    )


def frontend_versions(table: Mapping[str, str] = DEPENDENCY_VERSIONS) -> dict[str, str]:
    """
    Narrow version subset for a frontend ``package.json``.

    Returns
    -------
    dict[str, str]
        Framework runtimes, Vite and the matching Vite plugins.
    """
    return {
        name: table.get(name) or default
        for name, default in FRONTEND_VERSION_DEFAULTS.items()
    }
