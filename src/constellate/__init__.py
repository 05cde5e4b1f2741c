"""Constellate: declarative component composition.

Constellate builds systems of components from declared constructors. Each
constructor names the components (or external inputs) it depends on; the
framework validates the declarations into a graph, resolves a deterministic
construction order, instantiates every component once, and then starts and
stops the whole system with each component started after, and stopped before,
everything it depends on.

Basic Usage:
    >>> from constellate.registry import ComponentRegistry
    >>> from constellate.builders import make_system
    >>> from constellate.lifecycle import running
    >>>
    >>> registry = ComponentRegistry()
    >>>
    >>> @registry.provides()
    >>> def make_database(url) -> Database:
    ...     return Database(url)
    >>>
    >>> @registry.provides(aliases={"db": "database"})
    >>> def make_server(db) -> Server:
    ...     return Server(db)
    >>>
    >>> with running(make_system(registry, {"url": "sqlite://"})) as system:
    ...     system["server"].serve_forever()

The framework consists of several core modules:
    - registry: Declaration of constructors, with signature introspection and profiles
    - graph: Validation of declarations into a dependency graph
    - resolver: Deterministic topological ordering and cycle detection
    - compiler: Reusable initializers that construct systems
    - lifecycle: Coordinated start and stop with rollback
    - builders: High-level entry points
    - system, domain: Core data models
    - errors: Framework-specific exceptions
"""
