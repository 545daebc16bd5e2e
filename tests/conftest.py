"""
pytest configuration and shared fixtures for nodehatch tests.

This module provides fixtures and configuration used across all test modules.
Fixtures defined here are automatically available to all tests.

Fixtures
--------
output_dir : Path
    A temporary directory projects are generated into.

make_config : Callable[..., ProjectConfig]
    Factory building a ``ProjectConfig`` rooted in ``output_dir``.

template_root : Path
    A small template tree for renderer tests.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from nodehatch.models import ProjectConfig


@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    """
    Create a temporary directory for project creation tests.

    Returns
    -------
    Path
        Path to an empty directory.
    """
    path = tmp_path / "projects"
    path.mkdir()
    return path


@pytest.fixture
def make_config(output_dir: Path) -> Callable[..., ProjectConfig]:
    """Build configurations that generate into ``output_dir``."""

    def _make(**fields: Any) -> ProjectConfig:
        fields.setdefault("name", "demo-api")
        fields.setdefault("output_dir", output_dir)
        return ProjectConfig(**fields)

    return _make


@pytest.fixture
def template_root(tmp_path: Path) -> Path:
    """
    Provide a minimal template tree.

    Layout::

        group/
            README.md.j2
            logo.bin
            package.json.j2
            nested/deeper/index.js.j2
        single/hello.js.j2
        single/hello.ts.j2
        plain.txt.j2
    """
    root = tmp_path / "templates"
    group = root / "group"
    (group / "nested" / "deeper").mkdir(parents=True)
    (group / "README.md.j2").write_text("# {{ project_name }}\n")
    (group / "logo.bin").write_bytes(b"\x89PNG{{ not rendered }}")
    (group / "package.json.j2").write_text('{"name": "{{ project_name }}"}\n')
    (group / "nested" / "deeper" / "index.js.j2").write_text(
        "module.exports = '{{ project_name | camel_case }}';\n"
    )

    single = root / "single"
    single.mkdir()
    (single / "hello.js.j2").write_text("console.log('{{ project_name }}');\n")
    (single / "hello.ts.j2").write_text("console.log('{{ project_name }}' as string);\n")

    (root / "plain.txt.j2").write_text("{{ project_name | camel_case }}\n")
    return root


# =============================================================================
# pytest Configuration
# =============================================================================

def pytest_configure(config: pytest.Config) -> None:
    """
    Configure pytest with custom markers.

    This function is called by pytest during startup to register
    custom markers used in our test suite.
    """
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that render the shipped templates end to end"
    )
