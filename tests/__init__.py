"""
nodehatch test suite
====================

Test Modules
------------
- test_models.py: Pydantic configuration models
- test_resolver.py: Dependency and script resolution
- test_renderer.py: Template store and rendering
- test_patcher.py: Idempotent source patching
- test_generator.py: Generation pipeline, end to end
- test_cli.py: Command-line interface

Running Tests
-------------
    # Run all tests
    pytest

    # Skip end-to-end template rendering
    pytest -m "not integration"

    # Run specific module
    pytest tests/test_patcher.py
"""
