"""
Tests for nodehatch.generator
=============================

This module contains tests for the generation pipeline. Most tests render
the shipped templates into a temporary directory; git and npm are never run
for real (``git_init``/``install_deps`` default to off, or ``run_command``
is patched).

Test Organization
-----------------
- TestValidateConfig: Business rules checked while validating
- TestHelpers: Pure helpers (directories, .env, next steps)
- TestRunCommand: External process handling
- TestFanOut: Concurrent render group
- TestBackendProjects: Backend-only end-to-end generation
- TestFrontendProjects: Frontend-only and fullstack generation
- TestAuthentication: Auth rendering and idempotent wiring
- TestPipeline: Runner behaviour (skips, failures, best effort)
"""

import asyncio
import gc
import json
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from nodehatch.errors import (
    ExternalProcessError,
    MissingTemplateError,
    TaskFailedError,
    ValidationError,
)
from nodehatch.generator import (
    GITIGNORE_ENTRIES,
    GenerationState,
    ProjectGenerator,
    Task,
    _fan_out,
    build_env_content,
    create_project,
    generate_project,
    get_directories,
    next_steps,
    run_command,
    strip_env_values,
    validate_config,
)
from nodehatch.models import (
    Authentication,
    Backend,
    Database,
    Frontend,
    Language,
)
from nodehatch.renderer import TemplateStore


def read_manifest(path: Path) -> dict:
    return json.loads((path / "package.json").read_text())


# =============================================================================
# Validation Tests
# =============================================================================

class TestValidateConfig:
    """Tests for validate_config."""

    def test_valid_config(self, make_config) -> None:
        validate_config(make_config())

    def test_invalid_name(self, make_config) -> None:
        with pytest.raises(ValidationError, match="Invalid project name"):
            validate_config(make_config(name="Demo API"))

    def test_database_requires_backend(self, make_config) -> None:
        config = make_config(
            backend=Backend.NONE, frontend=Frontend.REACT, database=Database.MONGODB
        )
        with pytest.raises(ValidationError, match="requires a backend"):
            validate_config(config)

    def test_needs_backend_or_frontend(self, make_config) -> None:
        config = make_config(backend=Backend.NONE, frontend=Frontend.NONE)
        with pytest.raises(ValidationError, match="must select a frontend"):
            validate_config(config)

    def test_empty_existing_directory_is_fine(self, make_config, output_dir: Path) -> None:
        (output_dir / "demo-api").mkdir()
        validate_config(make_config())

    def test_non_empty_directory_rejected(self, make_config, output_dir: Path) -> None:
        target = output_dir / "demo-api"
        target.mkdir()
        (target / "notes.txt").write_text("hi")

        with pytest.raises(ValidationError, match="not empty"):
            validate_config(make_config())

        validate_config(make_config(), force=True)

    def test_file_in_the_way(self, make_config, output_dir: Path) -> None:
        (output_dir / "demo-api").write_text("")
        with pytest.raises(ValidationError, match="not a directory"):
            validate_config(make_config(), force=True)


# =============================================================================
# Helper Tests
# =============================================================================

class TestHelpers:
    """Tests for pure helpers."""

    def test_backend_directories(self, make_config) -> None:
        assert get_directories(make_config()) == [
            "src", "src/config", "src/routes", "src/middlewares",
        ]

    def test_typescript_adds_types(self, make_config) -> None:
        assert "types" in get_directories(make_config(language=Language.TYPESCRIPT))

    def test_fullstack_directories(self, make_config) -> None:
        dirs = get_directories(make_config(frontend=Frontend.VUE))
        assert "client" in dirs
        assert "public" not in dirs

    def test_frontend_only_directories(self, make_config) -> None:
        dirs = get_directories(make_config(backend=Backend.NONE, frontend=Frontend.VUE))
        assert dirs == ["public"]

    def test_env_without_database(self, make_config) -> None:
        assert build_env_content(make_config()) == "PORT=3000\nNODE_ENV=development\n"

    def test_env_mongodb(self, make_config) -> None:
        content = build_env_content(make_config(database=Database.MONGODB))
        assert "MONGO_URI=mongodb://localhost:27017/yourdbname\n" in content

    def test_env_postgresql(self, make_config) -> None:
        content = build_env_content(make_config(database=Database.POSTGRESQL))
        for key in ("PG_HOST", "PG_PORT", "PG_USER", "PG_PASSWORD", "PG_DATABASE"):
            assert f"\n{key}=" in content

    def test_env_jwt_secret(self, make_config) -> None:
        content = build_env_content(make_config(authentication=Authentication.JWT))
        assert "JWT_SECRET=change-me\n" in content
        assert "JWT_SECRET=" not in build_env_content(make_config())

    def test_strip_env_values(self) -> None:
        assert strip_env_values("PORT=3000\nURL=a=b\n") == "PORT=\nURL=\n"

    def test_next_steps_backend_javascript(self, make_config) -> None:
        assert next_steps(make_config()) == [
            "cd demo-api",
            "npm start     # Start application",
        ]

    def test_next_steps_backend_typescript(self, make_config) -> None:
        steps = next_steps(make_config(language=Language.TYPESCRIPT))
        assert steps[1:] == [
            "npm run dev   # Start development server",
            "npm run build # Build for production",
        ]

    def test_next_steps_frontend_only(self, make_config) -> None:
        steps = next_steps(make_config(backend=Backend.NONE, frontend=Frontend.REACT))
        assert steps[1].startswith("npm install")
        assert steps[2].startswith("npm run dev")
        assert len(steps) == 3

    def test_next_steps_fullstack(self, make_config) -> None:
        steps = next_steps(make_config(frontend=Frontend.REACT))

        assert steps[1].startswith("cd client")
        assert "# In root directory:" in steps
        assert steps[-1].startswith("npm start")

    def test_next_steps_fullstack_typescript(self, make_config) -> None:
        steps = next_steps(make_config(frontend=Frontend.VUE, language=Language.TYPESCRIPT))
        assert steps[-1].startswith("npm run dev")


# =============================================================================
# External Process Tests
# =============================================================================

class TestRunCommand:
    """Tests for run_command."""

    @pytest.mark.asyncio
    async def test_success(self, tmp_path: Path) -> None:
        await run_command([sys.executable, "-c", "pass"], tmp_path)

    @pytest.mark.asyncio
    async def test_nonzero_exit(self, tmp_path: Path) -> None:
        with pytest.raises(ExternalProcessError, match="exit code 3") as exc_info:
            await run_command([sys.executable, "-c", "raise SystemExit(3)"], tmp_path)
        assert exc_info.value.returncode == 3

    @pytest.mark.asyncio
    async def test_missing_program(self, tmp_path: Path) -> None:
        with pytest.raises(ExternalProcessError, match="not found") as exc_info:
            await run_command(["nodehatch-no-such-program"], tmp_path)
        assert exc_info.value.returncode is None


class TestFanOut:
    """Tests for the concurrent render group."""

    @pytest.mark.asyncio
    async def test_runs_all_jobs(self) -> None:
        done: list[str] = []

        async def job(name: str) -> None:
            await asyncio.sleep(0)
            done.append(name)

        await _fan_out(job("a"), job("b"), job("c"))

        assert sorted(done) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_first_failure_cancels_siblings(self) -> None:
        cancelled: list[bool] = []

        async def slow() -> None:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(True)
                raise

        async def boom() -> None:
            await asyncio.sleep(0)
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await _fan_out(slow(), boom())

        assert cancelled == [True]

    @pytest.mark.asyncio
    async def test_every_failure_is_retrieved(self) -> None:
        loop = asyncio.get_running_loop()
        reported: list[dict] = []
        loop.set_exception_handler(lambda _loop, context: reported.append(context))
        tasks: list[asyncio.Task] = []

        async def boom(name: str) -> None:
            tasks.append(asyncio.current_task())
            await asyncio.sleep(0)
            raise RuntimeError(name)

        try:
            with pytest.raises(RuntimeError):
                await _fan_out(boom("first"), boom("second"))

            assert len(tasks) == 2
            assert all(task.done() for task in tasks)
            del tasks[:]
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert reported == []


# =============================================================================
# Backend Project Tests
# =============================================================================

@pytest.mark.integration
class TestBackendProjects:
    """End-to-end generation of backend-only projects."""

    @pytest.mark.asyncio
    async def test_minimal_express(self, make_config) -> None:
        config = make_config()

        result = await generate_project(config, verbose=False)

        root = config.project_dir
        assert result.success
        assert result.state is GenerationState.DONE
        assert (root / ".env").exists()
        assert (root / ".env.example").read_text() == "PORT=\nNODE_ENV=\n"
        assert (root / ".gitignore").read_text().splitlines() == list(GITIGNORE_ENTRIES)
        assert (root / "src" / "server.js").exists()
        assert not (root / "client").exists()

        manifest = read_manifest(root)
        assert manifest["name"] == "demo-api"
        assert manifest["main"] == "src/server.js"
        assert "express" in manifest["dependencies"]
        assert "mongoose" not in manifest["dependencies"]
        assert "sequelize" not in manifest["dependencies"]

    @pytest.mark.asyncio
    async def test_express_with_mongodb(self, make_config) -> None:
        config = make_config(database=Database.MONGODB)

        await generate_project(config, verbose=False)

        root = config.project_dir
        assert (root / "src" / "config" / "db.js").exists()
        assert (root / "src" / "models" / "User.js").exists()
        assert any(
            line.startswith("MONGO_URI=")
            for line in (root / ".env").read_text().splitlines()
        )
        assert "mongoose" in read_manifest(root)["dependencies"]
        assert "connectDB" in (root / "src" / "server.js").read_text()

    @pytest.mark.asyncio
    async def test_express_middleware_files(self, make_config) -> None:
        config = make_config(middleware=["cors", "express-rate-limit"])

        result = await generate_project(config, verbose=False)

        middlewares = config.project_dir / "src" / "middlewares"
        assert (middlewares / "cors.js").exists()
        assert "rateLimit" in (middlewares / "express-rate-limit.js").read_text()
        server = (config.project_dir / "src" / "server.js").read_text()
        assert "require('./middlewares/express-rate-limit')" in server
        assert "app.use(expressRateLimit);" in server
        assert middlewares / "cors.js" in result.files_created

    @pytest.mark.asyncio
    async def test_fastify_typescript_postgresql(self, make_config) -> None:
        config = make_config(
            backend=Backend.FASTIFY,
            language=Language.TYPESCRIPT,
            database=Database.POSTGRESQL,
            middleware=["rate-limit"],
        )

        await generate_project(config, verbose=False)

        root = config.project_dir
        assert (root / "src" / "server.ts").exists()
        assert (root / "src" / "config" / "db.ts").exists()
        assert (root / "src" / "middlewares" / "rate-limit.ts").exists()
        assert (root / "tsconfig.json").exists()
        assert (root / "types").is_dir()

        manifest = read_manifest(root)
        assert manifest["main"] == "dist/server.js"
        assert manifest["scripts"]["build"] == "tsc"
        assert {"fastify", "@fastify/rate-limit", "sequelize", "pg"} <= manifest["dependencies"].keys()
        assert {"typescript", "@types/pg"} <= manifest["devDependencies"].keys()

    def test_sync_wrapper(self, make_config) -> None:
        config = make_config()
        result = create_project(config, verbose=False)
        assert result.success
        assert result.project_path == config.project_dir

    @pytest.mark.asyncio
    async def test_force_into_non_empty_directory(self, make_config, output_dir: Path) -> None:
        target = output_dir / "demo-api"
        target.mkdir()
        (target / "README.md").write_text("keep me")

        await generate_project(make_config(), verbose=False, force=True)

        assert (target / "README.md").read_text() == "keep me"
        assert (target / "src" / "server.js").exists()


# =============================================================================
# Frontend Project Tests
# =============================================================================

@pytest.mark.integration
class TestFrontendProjects:
    """Frontend-only and fullstack generation."""

    @pytest.mark.asyncio
    async def test_frontend_only_react(self, make_config) -> None:
        config = make_config(name="site", backend=Backend.NONE, frontend=Frontend.REACT)

        await generate_project(config, verbose=False)

        root = config.project_dir
        assert not (root / ".env").exists()
        assert not (root / "src" / "server.js").exists()
        assert not (root / "client").exists()
        assert (root / "public").is_dir()
        assert (root / "public" / "vite.svg").exists()
        assert (root / "index.html").exists()
        assert (root / "src" / "App.jsx").exists()

        manifest = read_manifest(root)
        assert {"react", "react-dom"} <= manifest["dependencies"].keys()
        assert "vite" in manifest["devDependencies"]

    @pytest.mark.asyncio
    async def test_frontend_only_has_no_proxy(self, make_config) -> None:
        config = make_config(name="site", backend=Backend.NONE, frontend=Frontend.VUE)

        await generate_project(config, verbose=False)

        vite_config = (config.project_dir / "vite.config.js").read_text()
        assert "proxy" not in vite_config
        assert "{{ status }}" not in (config.project_dir / "src" / "App.vue").read_text()

    @pytest.mark.asyncio
    async def test_fullstack_vue(self, make_config) -> None:
        config = make_config(name="shop", frontend=Frontend.VUE)

        await generate_project(config, verbose=False)

        root = config.project_dir
        client = root / "client"
        assert (client / "src" / "App.vue").exists()
        assert (client / "public" / "vite.svg").exists()
        assert not (root / "public").exists()
        assert "'/api'" in (client / "vite.config.js").read_text()
        assert "{{ status }}" in (client / "src" / "App.vue").read_text()

        assert "vue" in read_manifest(client)["dependencies"]
        root_manifest = read_manifest(root)
        assert "express" in root_manifest["dependencies"]
        assert "vue" not in root_manifest["dependencies"]

    @pytest.mark.asyncio
    async def test_frontend_manifest_fallback(self, make_config, tmp_path: Path) -> None:
        """Without a framework manifest template the shared one is used."""
        shipped = TemplateStore().root
        store_root = tmp_path / "store"
        (store_root / "shared").mkdir(parents=True)
        (store_root / "frontend" / "react").mkdir(parents=True)
        (store_root / "shared" / "package.json.j2").write_text(
            (shipped / "shared" / "package.json.j2").read_text()
        )
        (store_root / "frontend" / "react" / "index.html.j2").write_text(
            "<title>{{ project_name }}</title>\n"
        )
        config = make_config(name="site", backend=Backend.NONE, frontend=Frontend.REACT)

        await generate_project(config, store=TemplateStore(store_root), verbose=False)

        manifest = read_manifest(config.project_dir)
        assert "react" in manifest["dependencies"]
        assert "main" not in manifest


# =============================================================================
# Authentication Tests
# =============================================================================

@pytest.mark.integration
class TestAuthentication:
    """Auth rendering and idempotent wiring."""

    @pytest.mark.asyncio
    async def test_jwt_wired_once(self, make_config) -> None:
        config = make_config(authentication=Authentication.JWT)
        generator = ProjectGenerator(config, verbose=False)

        await generator.run()
        # integrating a second time must not duplicate anything
        await generator.generate_authentication()

        src = config.project_dir / "src"
        server = (src / "server.js").read_text()
        assert server.count("require('./routes/auth.routes')") == 1
        assert server.count("app.use('/api/auth', authRoutes);") == 1
        assert server.index("authRoutes = require") < server.index("const app = express()")
        assert (src / "routes" / "auth.routes.js").exists()
        assert (src / "middlewares" / "auth.middleware.js").exists()
        assert "JWT_SECRET=\n" in (config.project_dir / ".env.example").read_text()

    @pytest.mark.asyncio
    async def test_fastify_typescript_jwt(self, make_config) -> None:
        config = make_config(
            backend=Backend.FASTIFY,
            language=Language.TYPESCRIPT,
            authentication=Authentication.JWT,
        )

        await generate_project(config, verbose=False)

        server = (config.project_dir / "src" / "server.ts").read_text()
        assert server.count("import authRoutes from './routes/auth.routes';") == 1
        assert server.count("prefix: '/api/auth'") == 1
        assert {"jsonwebtoken", "bcryptjs"} <= read_manifest(config.project_dir)["dependencies"].keys()


# =============================================================================
# Pipeline Tests
# =============================================================================

class TestPipeline:
    """Tests for the task runner."""

    @pytest.mark.asyncio
    async def test_disabled_tasks_are_skipped(self, make_config) -> None:
        result = await generate_project(make_config(), verbose=False)

        assert result.skipped == [
            "Generating frontend",
            "Initializing version control",
            "Installing dependencies",
        ]

    @pytest.mark.asyncio
    async def test_validation_failure_writes_nothing(self, make_config, output_dir: Path) -> None:
        config = make_config(name="Bad Name")
        generator = ProjectGenerator(config, verbose=False)

        with pytest.raises(TaskFailedError, match="Validating project configuration") as exc_info:
            await generator.run()

        assert isinstance(exc_info.value.cause, ValidationError)
        assert generator.result.state is GenerationState.FAILED
        assert not generator.result.success
        assert list(output_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_template_fails_the_run(self, make_config, tmp_path: Path) -> None:
        empty = tmp_path / "empty-store"
        empty.mkdir()
        generator = ProjectGenerator(make_config(), store=TemplateStore(empty), verbose=False)

        with pytest.raises(TaskFailedError, match="Generating project files") as exc_info:
            await generator.run()

        assert isinstance(exc_info.value.cause, MissingTemplateError)
        assert generator.result.errors
        assert generator.result.state is GenerationState.FAILED

    @pytest.mark.asyncio
    async def test_git_failure_is_a_warning(self, make_config) -> None:
        config = make_config(git_init=True)
        failing = AsyncMock(side_effect=ExternalProcessError(["git", "init"], 128))

        with patch("nodehatch.generator.run_command", failing):
            result = await generate_project(config, verbose=False)

        assert result.success
        assert len(result.warnings) == 1
        assert "git init" in result.warnings[0]
        failing.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_install_runs_npm(self, make_config) -> None:
        config = make_config(install_deps=True)
        runner = AsyncMock()

        with patch("nodehatch.generator.run_command", runner):
            result = await generate_project(config, verbose=False)

        assert result.success
        runner.assert_awaited_once_with(
            ["npm", "install", "--quiet"], config.project_dir, inherit_stdio=True
        )

    @pytest.mark.asyncio
    async def test_custom_pipeline(self, make_config) -> None:
        calls: list[str] = []

        async def record(generator: ProjectGenerator) -> None:
            calls.append(generator.config.name)

        pipeline = (
            Task("first", GenerationState.VALIDATING, record),
            Task("never", GenerationState.GENERATING, record, predicate=lambda c: False),
            Task("last", GenerationState.GENERATING, record),
        )
        generator = ProjectGenerator(make_config(), verbose=False)

        result = await generator.run(pipeline)

        assert calls == ["demo-api", "demo-api"]
        assert result.skipped == ["never"]
        assert result.state is GenerationState.DONE

    @pytest.mark.asyncio
    async def test_required_external_failure_aborts(self, make_config) -> None:
        async def fail(generator: ProjectGenerator) -> None:
            raise ExternalProcessError(["npm", "ci"], 1)

        generator = ProjectGenerator(make_config(), verbose=False)

        with pytest.raises(TaskFailedError, match="npm ci"):
            await generator.run((Task("Strict step", GenerationState.GENERATING, fail),))

        assert generator.result.state is GenerationState.FAILED
