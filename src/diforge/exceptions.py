from __future__ import annotations

from pathlib import Path


class DIForgeError(Exception):
    """Represent a base class for all diforge-specific failures.

    Catch this type when you want to handle any diforge error path without
    matching each concrete exception class individually.
    """


class DIForgeUnboundError(DIForgeError):
    """Signal that a dependency key has no binding.

    Raised by ``resolve`` and ``is_singleton`` on both the interpreted
    ``Injector`` and the ``CompiledContainer``, and by the unit compiler when
    asked to compile a key the module does not bind.

    Typical fix is adding a registration for the key to the module, for
    example ``module.add_concrete(Impl, provides=Interface)``.
    """

    def __init__(self, key: str) -> None:
        super().__init__(f"Unbound dependency key '{key}'.")
        self.key = key


class DIForgeFileNotWritableError(DIForgeError):
    """Signal that a cache artifact could not be written.

    Raised by ``AtomicFileWriter`` when either the temporary write or the
    rename into place fails, and by ``ensure_directory`` when the cache
    directory cannot be created. The write is never retried internally.
    """

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Cannot write path '{path}'.")
        self.path = Path(path)


class DIForgeInvalidBindingError(DIForgeError):
    """Signal invalid registration or an uncompilable binding.

    Raised by ``Module`` registration methods when arguments are invalid and
    by the unit compiler when a binding target cannot be referenced by import
    path from generated code.
    """


class DIForgeSerializationError(DIForgeError):
    """Signal that a module snapshot cannot be serialized or deserialized.

    Instance bindings must hold JSON-compatible values and class or factory
    targets must be importable for a module to be written to ``module.txt``.
    """
