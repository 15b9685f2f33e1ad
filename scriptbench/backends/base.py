"""
Backend interface for scriptbench.

Defines the core abstraction that lets the same workload be executed against
different JavaScript engines (embedded V8, a ``node`` process, Duktape, …).

Architecture
------------
- :class:`Workload`          – immutable description of the code under test.
- :class:`LoadedProgram`     – opaque handle returned by :meth:`ScriptBackend.load`.
- :class:`ScriptBackend`     – ABC that each engine adapter must implement.
- :func:`register_backend`   – decorator to register a backend class by name.
- :func:`resolve_backend`    – factory that always returns a backend instance.
- :func:`list_backends`      – enumerate all registered backend names.
- :func:`load_all_backends`  – import the bundled adapters so they register.

Engine lifetime
---------------
Every backend owns exactly one engine between :meth:`ScriptBackend.acquire`
and :meth:`ScriptBackend.release`.  Backends are context managers, so the
runner writes ``with backend: ...`` and the engine is torn down on every exit
path.  Programs loaded into one engine generation are rejected after release.

Adding a new backend
--------------------
1. Create ``scriptbench/backends/<name>_backend.py``.
2. Implement :class:`ScriptBackend` and decorate with ``@register_backend("<name>")``.
3. Add the module to :data:`BUNDLED_BACKEND_MODULES` or import it yourself.
"""

from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from ..errors import InvocationError, LoadError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Workload:
    """Code under test, shared by every backend in a session.

    Attributes
    ----------
    name:
        Catalog name; used as a label in results.
    source_text:
        Script that defines :attr:`entry_point`.
    entry_point:
        Name of the global function invoked once per iteration.
    auxiliary_sources:
        Library scripts evaluated, in order, before :attr:`source_text`.
    auxiliary_names:
        Asset names of :attr:`auxiliary_sources`, used for engine file names
        and error messages.
    """

    name: str
    source_text: str
    entry_point: str
    auxiliary_sources: tuple[str, ...] = ()
    auxiliary_names: tuple[str, ...] = ()
    source_name: str = "workload.js"

    def __post_init__(self) -> None:
        # Lists are accepted for convenience but stored as tuples.
        object.__setattr__(self, "auxiliary_sources", tuple(self.auxiliary_sources))
        names = tuple(self.auxiliary_names) or tuple(
            f"auxiliary_{i}.js" for i in range(len(self.auxiliary_sources))
        )
        if len(names) != len(self.auxiliary_sources):
            raise ValueError("auxiliary_names must match auxiliary_sources in length")
        object.__setattr__(self, "auxiliary_names", names)
        if not self.entry_point:
            raise ValueError("entry_point must be a non-empty function name")

    def sources(self) -> list[tuple[str, str]]:
        """Return ``(name, text)`` pairs in evaluation order."""
        pairs = list(zip(self.auxiliary_names, self.auxiliary_sources))
        pairs.append((self.source_name, self.source_text))
        return pairs


@dataclass(frozen=True)
class LoadedProgram:
    """Handle to a workload loaded into one engine generation of one backend."""

    backend_name: str
    entry_point: str
    generation: int
    owner_id: int
    handle: Any = field(default=None, compare=False, repr=False)


# ---------------------------------------------------------------------------
# Backend interface
# ---------------------------------------------------------------------------


class ScriptBackend(ABC):
    """Abstract base class for script execution backends.

    Subclasses implement :meth:`is_available`, the engine hooks
    :meth:`_create_engine` / :meth:`_destroy_engine`, and the two protocol
    operations :meth:`_load` / :meth:`_invoke`.  The public :meth:`load` and
    :meth:`invoke` wrappers enforce ownership and engine lifetime so every
    adapter behaves the same way.
    """

    #: Human-readable description shown in reports.
    description: str = ""

    #: Whether :meth:`invoke` can stop a call that overruns ``timeout_s``.
    supports_invoke_timeout: bool = False

    def __init__(self, **options: Any):
        self.options = options
        self._engine: Any = None
        self._generation = 0
        self._acquired = False

    # -- identity / availability ------------------------------------------------

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Canonical lowercase name for this backend (e.g. ``"v8"``)."""
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the engine can be used in this environment.

        Implementations should do a lightweight import or executable lookup;
        they should *not* start an engine here.
        """
        ...

    def unavailable_reason(self) -> str:
        """Explain why :meth:`is_available` is ``False`` (install hint)."""
        return f"Backend '{self.backend_name}' is not available in this environment."

    # -- lifetime -----------------------------------------------------------------

    @property
    def is_acquired(self) -> bool:
        return self._acquired

    def acquire(self) -> None:
        """Create a fresh engine instance. Idempotent while acquired."""
        if self._acquired:
            return
        self._engine = self._create_engine()
        self._generation += 1
        self._acquired = True
        logger.debug("%s: engine acquired (generation %d)", self.backend_name, self._generation)

    def release(self) -> None:
        """Tear down the engine. Safe to call more than once."""
        if not self._acquired:
            return
        engine, self._engine = self._engine, None
        self._acquired = False
        try:
            self._destroy_engine(engine)
        finally:
            logger.debug("%s: engine released (generation %d)", self.backend_name, self._generation)

    def __enter__(self) -> ScriptBackend:
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    # -- protocol -----------------------------------------------------------------

    def load(self, workload: Workload) -> LoadedProgram:
        """Evaluate *workload* in the engine and return a program handle.

        Raises
        ------
        LoadError
            If the engine is not acquired or rejects any of the sources.
        """
        if not self._acquired:
            raise LoadError(self.backend_name, "engine not acquired; use the backend as a context manager")
        handle = self._load(self._engine, workload)
        return LoadedProgram(
            backend_name=self.backend_name,
            entry_point=workload.entry_point,
            generation=self._generation,
            owner_id=id(self),
            handle=handle,
        )

    def invoke(self, program: LoadedProgram, timeout_s: float | None = None) -> float:
        """Call the program's entry point once and return its duration in ms.

        With *timeout_s* set, the adapter stops the call through its engine
        and raises :class:`InvocationTimeoutError`.

        Raises
        ------
        InvocationError
            If *program* belongs to another backend or a released engine, or
            if the call itself fails.
        """
        if program.owner_id != id(self) or program.backend_name != self.backend_name:
            raise InvocationError(self.backend_name, "program was loaded by a different backend")
        if not self._acquired or program.generation != self._generation:
            raise InvocationError(self.backend_name, "program belongs to a released engine")
        if timeout_s is not None and not self.supports_invoke_timeout:
            raise InvocationError(self.backend_name, "invocation timeouts are not supported")
        return self._invoke(self._engine, program, timeout_s)

    # -- adapter hooks ------------------------------------------------------------

    @abstractmethod
    def _create_engine(self) -> Any:
        ...

    def _destroy_engine(self, engine: Any) -> None:
        """Release engine resources. Default: drop the reference."""

    @abstractmethod
    def _load(self, engine: Any, workload: Workload) -> Any:
        ...

    @abstractmethod
    def _invoke(self, engine: Any, program: LoadedProgram, timeout_s: float | None) -> float:
        ...


class UnregisteredBackend(ScriptBackend):
    """Placeholder returned by :func:`resolve_backend` for unknown names."""

    def __init__(self, name: str, **options: Any):
        super().__init__(**options)
        self._name = name.lower()

    @property
    def backend_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return False

    def unavailable_reason(self) -> str:
        registered = ", ".join(list_backends()) or "(none registered)"
        return f"Unknown backend '{self._name}'. Registered backends: {registered}."

    def _create_engine(self) -> Any:
        raise LoadError(self._name, self.unavailable_reason())

    def _load(self, engine: Any, workload: Workload) -> Any:
        raise LoadError(self._name, self.unavailable_reason())

    def _invoke(self, engine: Any, program: LoadedProgram, timeout_s: float | None) -> float:
        raise InvocationError(self._name, self.unavailable_reason())


# ---------------------------------------------------------------------------
# Registry and factory
# ---------------------------------------------------------------------------

_REGISTRY: dict[str, type[ScriptBackend]] = {}

BUNDLED_BACKEND_MODULES: tuple[str, ...] = (
    "scriptbench.backends.v8_backend",
    "scriptbench.backends.node_backend",
    "scriptbench.backends.duktape_backend",
)


def register_backend(name: str):
    """Class decorator: register a :class:`ScriptBackend` subclass by name.

    Example
    -------
    .. code-block:: python

        @register_backend("my_engine")
        class MyBackend(ScriptBackend):
            ...
    """

    def decorator(cls: type[ScriptBackend]) -> type[ScriptBackend]:
        _REGISTRY[name.lower()] = cls
        return cls

    return decorator


def resolve_backend(name: str, **options: Any) -> ScriptBackend:
    """Return a fresh backend instance for *name*.

    Never raises for missing engines or unknown names: an unregistered name
    yields an :class:`UnregisteredBackend` whose :meth:`is_available` is
    ``False``.  Callers branch on availability explicitly.
    """
    cls = _REGISTRY.get(name.lower())
    if cls is None:
        logger.warning("Backend '%s' is not registered", name)
        return UnregisteredBackend(name, **options)
    return cls(**options)


def list_backends() -> list[str]:
    """Return sorted list of all currently registered backend names."""
    return sorted(_REGISTRY)


def load_all_backends() -> list[str]:
    """Import the bundled adapter modules so they register themselves.

    Adapters import their engine libraries lazily, so this succeeds even when
    none of the optional engines are installed.
    """
    for module_name in BUNDLED_BACKEND_MODULES:
        importlib.import_module(module_name)
    return list_backends()
