"""
NamespaceRegistry: the table of callable functions reachable from a cell.
"""

import importlib
from typing import Any, Callable, Optional

from labbook.errors import UnknownFunction, UnknownNamespace


LibraryFunction = Callable[..., Any]


class NamespaceRegistry:
    """
    Ordered mapping of namespace name -> {function name -> callable}.

    Functions are invoked with positional arguments only. Namespace names
    must start with an uppercase letter to be reachable from the command
    language.
    """

    def __init__(self):
        self._namespaces: dict[str, dict[str, LibraryFunction]] = {}

    def register(self, namespace: str, name: Optional[str] = None, func: Optional[LibraryFunction] = None):
        """
        Register a function, directly or as a decorator.

            registry.register("Stats", "mean", mean)

            @registry.register("Stats")
            def median(values): ...
        """
        if func is not None:
            self._namespaces.setdefault(namespace, {})[name or func.__name__] = func
            return func

        def decorator(f: LibraryFunction) -> LibraryFunction:
            self._namespaces.setdefault(namespace, {})[name or f.__name__] = f
            return f

        return decorator

    def add_namespace(self, namespace: str, functions: dict[str, LibraryFunction]):
        """Add (or extend) a namespace from a name -> callable mapping."""
        table = self._namespaces.setdefault(namespace, {})
        for name, func in functions.items():
            if not callable(func):
                raise TypeError(f"{namespace}.{name} is not callable")
            table[name] = func

    def lookup(self, namespace: str, function: str) -> LibraryFunction:
        """
        Find a function.

        Raises:
            UnknownNamespace: namespace is not registered
            UnknownFunction: namespace has no such function
        """
        table = self._namespaces.get(namespace)
        if table is None:
            raise UnknownNamespace(namespace)
        func = table.get(function)
        if func is None:
            raise UnknownFunction(namespace, function)
        return func

    def namespaces(self) -> list[str]:
        return list(self._namespaces)

    def functions(self, namespace: str) -> list[str]:
        if namespace not in self._namespaces:
            raise UnknownNamespace(namespace)
        return list(self._namespaces[namespace])

    def __contains__(self, namespace: object) -> bool:
        return namespace in self._namespaces


def load_registry(path: str) -> NamespaceRegistry:
    """
    Load a registry from a dotted path, "package.module:attribute".

    The attribute may be a NamespaceRegistry or a zero-argument factory
    returning one.
    """
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Registry path must look like 'module:attribute', got {path!r}")
    module = importlib.import_module(module_name)
    target = getattr(module, attr)
    if not isinstance(target, NamespaceRegistry) and callable(target):
        target = target()
    if not isinstance(target, NamespaceRegistry):
        raise TypeError(f"{path} did not produce a NamespaceRegistry")
    return target
