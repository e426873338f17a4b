"""Resolve stored exception type names back into exception classes.

Failures are persisted as plain text (type name, message, traceback) so a
record stays inspectable long after the failing process exited. Turning the
type name back into a live exception is best effort: types registered here
are resolved first, then builtins, then (unless disabled) the dotted path is
imported.
"""

import builtins
import importlib

from queue_monitor.core.exceptions import ExceptionReconstructionFailed

_registry: dict[str, type[BaseException]] = {}
_import_enabled: bool = True


def qualified_name(exc_type: type[BaseException]) -> str:
    """Get the storable name of an exception type.

    Builtins are stored bare ("ValueError"), everything else as
    "module.QualName".
    """
    if exc_type.__module__ == "builtins":
        return exc_type.__qualname__
    return f"{exc_type.__module__}.{exc_type.__qualname__}"


def register_exception(exc_type: type[BaseException], name: str | None = None) -> None:
    """Register an exception type under its qualified name (or an alias)."""
    _registry[name or qualified_name(exc_type)] = exc_type


def unregister_exception(name: str) -> None:
    _registry.pop(name, None)


def set_import_enabled(enabled: bool) -> None:
    """Allow or forbid importing unregistered types by dotted path."""
    global _import_enabled
    _import_enabled = enabled


def load_configured_types(names: list[str]) -> None:
    """Pre-register exception types listed in configuration."""
    for name in names:
        register_exception(_import_type(name), name)


def _import_type(name: str) -> type[BaseException]:
    parts = name.replace(":", ".").split(".")

    # Longest importable module prefix wins, the rest is an attribute chain
    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            target = importlib.import_module(module_name)
        except ImportError:
            continue
        try:
            for attr in parts[split:]:
                target = getattr(target, attr)
        except AttributeError:
            raise ExceptionReconstructionFailed(
                name, f"module {module_name!r} has no attribute path {'.'.join(parts[split:])!r}"
            ) from None
        return _ensure_exception_type(name, target)

    raise ExceptionReconstructionFailed(name, "no importable module in path")


def _ensure_exception_type(name: str, candidate: object) -> type[BaseException]:
    if not isinstance(candidate, type) or not issubclass(candidate, BaseException):
        raise ExceptionReconstructionFailed(name, "not an exception type")
    return candidate


def resolve_exception_type(name: str) -> type[BaseException]:
    """Resolve a stored exception type name.

    Raises:
        ExceptionReconstructionFailed: If the name cannot be resolved to an
            exception type
    """
    if name in _registry:
        return _registry[name]

    if "." not in name and ":" not in name:
        builtin = getattr(builtins, name, None)
        if builtin is None:
            raise ExceptionReconstructionFailed(name, "unknown exception type")
        return _ensure_exception_type(name, builtin)

    if not _import_enabled:
        raise ExceptionReconstructionFailed(name, "type is not registered")

    return _import_type(name)


def reconstruct_exception(name: str, message: str | None) -> BaseException:
    """Instantiate the named exception type carrying the stored message.

    Raises:
        ExceptionReconstructionFailed: If the type is unknown or its
            constructor rejects a single message argument
    """
    exc_type = resolve_exception_type(name)
    try:
        return exc_type(message) if message is not None else exc_type()
    except Exception as e:
        raise ExceptionReconstructionFailed(name, f"constructor failed: {e}") from e
