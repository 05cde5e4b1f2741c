"""Registration and introspection utilities for component constructors."""

import inspect
from typing import (
    Annotated,
    Any,
    Callable,
    Mapping,
    Optional,
    get_args,
    get_origin,
    get_type_hints,
)

from constellate.domain import DependencySpec
from constellate.errors import DependencyError

__all__ = [
    "ComponentRegistry",
    "inferred_name",
    "spec_for",
]


def inferred_name(target: Any) -> str:
    """Derive component name from class or function name, removing 'make_' prefix if present.

    Args:
        target: The function or class to derive a name from.

    Returns:
        The class name, or the function name with any 'make_' prefix removed.

    Example:
        >>> inferred_name(Database)       # Returns "Database"
        >>> inferred_name(make_database)  # Returns "database"
        >>> inferred_name(my_service)     # Returns "my_service"
    """
    if inspect.isclass(target):
        return target.__name__

    if target.__name__.startswith("make_"):
        return target.__name__[5:]
    else:
        return target.__name__


def spec_for(
    construct: Callable,
    name: Optional[str] = None,
    aliases: Optional[Mapping[str, str]] = None,
) -> DependencySpec:
    """Build a :class:`DependencySpec` by reading a constructor's signature.

    Every parameter without a default value becomes a dependency. A parameter
    annotated as ``Annotated[T, "key"]`` is aliased to ``key``; explicit ``aliases``
    take precedence over annotations. Parameters with a default value keep it
    unless they are aliased.

    Args:
        construct: The function or class that constructs the component.
        name: Component name; inferred from ``construct`` if omitted.
        aliases: Optional mapping of parameter name to source key.

    Returns:
        The resulting DependencySpec.

    Raises:
        DependencyError: If the constructor takes ``*args``, ``**kwargs`` or
            positional-only parameters.

    Example:
        >>> def make_service(db: Annotated[Database, "postgres"], cache): ...
        >>> spec = spec_for(make_service)
        >>> spec.params   # ("db", "cache")
        >>> spec.aliases  # {"db": "postgres"}
    """
    component_name = name or inferred_name(construct)
    params, annotated_aliases = _get_parameters(construct, component_name, aliases or {})
    return DependencySpec(
        component_name,
        construct,
        params,
        {**annotated_aliases, **(aliases or {})},
    )


class _RegisteredSpec:
    __slots__ = ("spec", "profiles")

    def __init__(self, spec: DependencySpec, profiles: list[str]):
        self.spec = spec
        self.profiles = profiles


class ComponentRegistry:
    """Registry for component declarations, supporting profile-based filtering."""

    def __init__(self):
        self._registered: list[_RegisteredSpec] = []

    def register(self, spec: DependencySpec, profiles: Optional[list[str]] = None):
        """Register a component declaration explicitly.

        Args:
            spec: The DependencySpec to be registered.
            profiles: Optional list of profiles for which the component is active.
        """
        self._registered.append(_RegisteredSpec(spec, list(profiles or [])))

    def registered_specs(self, profiles: Optional[set[str]] = None) -> list[DependencySpec]:
        """Retrieve declarations in registration order, optionally filtered by active profiles.

        Args:
            profiles: A set of active profile names. If None, returns all declarations.

        Returns:
            A list of declarations whose profiles match the given profile set.
        """
        if profiles is None:
            return [r.spec for r in self._registered]
        return [r.spec for r in self._registered if _profiles_match(r.profiles, profiles)]

    def provides(
        self,
        name: Optional[str] = None,
        profiles: Optional[list[str]] = None,
        aliases: Optional[Mapping[str, str]] = None,
    ) -> Callable:
        """Decorator to register a function or class as a component constructor.

        Args:
            name: Optional logical name to assign; defaults to function name with 'make_'
                prefix removed, or the class name.
            profiles: Optional list of profiles for which the component is active.
            aliases: Optional mapping of parameter name to the key it is resolved against.

        Returns:
            A decorator that registers its target and returns it unchanged.

        Example:
            @registry.provides(profiles=["dev"], aliases={"conn": "database"})
            def make_repository(conn) -> Repository:
                return Repository(conn)
        """

        def decorator(obj):
            if not (inspect.isclass(obj) or inspect.isfunction(obj)):
                raise DependencyError(f"{obj} is not a class or function")
            self.register(spec_for(obj, name, aliases), profiles)
            return obj

        return decorator


def _profiles_match(stated: list[str], selected: set[str]) -> bool:
    """Check if a declaration's profile requirements match the selected profiles.

    Profile matching supports inclusion and exclusion patterns:
    - Normal profiles ("dev", "prod") must be in the selected set
    - Exclusion profiles ("!test") must NOT be in the selected set
    - Empty stated profiles match all selected profiles

    Example:
        >>> _profiles_match(["dev"], {"dev"})          # True
        >>> _profiles_match(["!test"], {"dev"})        # True
        >>> _profiles_match(["!test"], {"test"})       # False
        >>> _profiles_match(["prod"], {"dev"})         # False
    """
    provided = [p for p in stated if not p.startswith("!")]
    excluded = [p[1:] for p in stated if p.startswith("!")]

    return not any(e in selected for e in excluded) and (
        not provided or any(p in selected for p in provided)
    )


def _get_parameters(
    construct: Callable, component_name: str, explicit_aliases: Mapping[str, str]
) -> tuple[list[str], dict[str, str]]:
    sig = inspect.signature(construct)
    hints = _type_hints(construct)

    params, aliases = [], {}
    for param_name, param in sig.parameters.items():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            raise DependencyError(
                f"Dependency <{param_name}> of component <{component_name}> "
                "is variadic and cannot be resolved by name"
            )
        if param.kind is inspect.Parameter.POSITIONAL_ONLY:
            raise DependencyError(
                f"Dependency <{param_name}> of component <{component_name}> "
                "is positional-only and cannot be passed by name"
            )
        alias = _alias_from(hints.get(param_name))
        if (
            param.default is not inspect.Parameter.empty
            and alias is None
            and param_name not in explicit_aliases
        ):
            continue
        params.append(param_name)
        if alias is not None:
            aliases[param_name] = alias

    return params, aliases


def _type_hints(construct: Callable) -> dict[str, Any]:
    target = construct.__init__ if inspect.isclass(construct) else construct
    if not inspect.isfunction(target):
        return {}
    return get_type_hints(target, include_extras=True)


def _alias_from(annotation) -> Optional[str]:
    if get_origin(annotation) is not Annotated:
        return None
    _, *metadata = get_args(annotation)
    return next((m for m in metadata if isinstance(m, str)), None)
