"""
nodehatch.templates - Template Groups
=====================================

Template files used to generate Node.js projects. They are addressed by
logical unit through ``nodehatch.renderer.TemplateStore``.

Template Naming Convention
--------------------------
- ``*.j2`` files are rendered with Jinja2; the output name drops ``.j2``
- Any other file is copied as is (e.g. ``public/vite.svg``)
- Language variants sit side by side: ``server.js.j2`` / ``server.ts.j2``

Layout
------
shared/
    - package.json.j2: Root manifest (scripts, dependencies, devDependencies)
    - tsconfig.json.j2: TypeScript compiler options
    - db/<database>.{js,ts}.j2: Database connection helper
    - models/User.{js,ts}.j2: Example model for the selected database

express/, fastify/
    - server.{js,ts}.j2: Entry point with ``// nodehatch:imports`` and
      ``// nodehatch:routes`` insertion slots
    - middleware.{js,ts}.j2: One file per selected middleware

auth/<strategy>/backend/<backend>/<language>/
    - routes/, middlewares/: Rendered into ``src/``

frontend/<framework>/
    - Vite project rendered into ``client/`` or the project root
    - package.json.j2: Rendered separately with a narrow version subset

Template Context
----------------
Templates receive ``RenderContext.as_template_vars()``: project_name,
language, backend, database, middleware, frontend, authentication, bundler,
ext, is_typescript, scripts, dependencies and dev_dependencies.
"""
