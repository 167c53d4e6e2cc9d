"""Chained lexical environments.

An Environment is one frame of bindings plus a pointer to its parent.
Lookups walk outward; declarations always land in the innermost frame;
reassignment mutates the frame that owns the name.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from recolon.ownership import OwnershipState
from recolon_runtime.exceptions import EvaluationError, EvaluationErrorKind


class Binding:
    """A name, its value and the runtime side of its ownership state."""

    __slots__ = ("name", "value", "moved", "borrows", "borrowed_from", "mutating")

    def __init__(self, name: str, value: Any, borrowed_from: Binding | None = None):
        self.name = name
        self.value = value
        self.moved = False
        self.borrows = 0
        self.mutating = False
        self.borrowed_from = borrowed_from
        if borrowed_from is not None:
            borrowed_from.borrows += 1

    @property
    def state(self) -> OwnershipState:
        if self.moved:
            return OwnershipState.MOVED
        if self.mutating:
            return OwnershipState.BORROWED_MUTABLE
        if self.borrows:
            return OwnershipState.BORROWED_IMMUTABLE
        return OwnershipState.OWNED

    @contextmanager
    def mutable_borrow(self) -> Iterator[Binding]:
        """Hold the value mutably borrowed while a field or element is written."""
        self.mutating = True
        try:
            yield self
        finally:
            self.mutating = False

    def release(self) -> None:
        """End the borrow this binding holds, if any."""
        if self.borrowed_from is not None:
            self.borrowed_from.borrows = max(0, self.borrowed_from.borrows - 1)
            self.borrowed_from = None

    def __repr__(self) -> str:
        return f"Binding({self.name!r}, {self.state.value})"


class Environment:
    def __init__(self, parent: Environment | None = None, sealed: bool = False):
        self.parent = parent
        self.sealed = sealed
        self.bindings: dict[str, Binding] = {}

    def define(self, name: str, value: Any, borrowed_from: Binding | None = None) -> Binding:
        """Declare *name* in this frame, replacing any earlier declaration here."""
        previous = self.bindings.get(name)
        if previous is not None:
            previous.release()
        binding = Binding(name, value, borrowed_from)
        self.bindings[name] = binding
        return binding

    def resolve(self, name: str) -> Binding | None:
        env = self
        while env is not None:
            binding = env.bindings.get(name)
            if binding is not None:
                return binding
            env = env.parent
        return None

    def owner_of(self, name: str) -> Environment | None:
        env = self
        while env is not None:
            if name in env.bindings:
                return env
            env = env.parent
        return None

    def lookup(self, name: str) -> Any:
        binding = self.resolve(name)
        if binding is None:
            raise EvaluationError(
                EvaluationErrorKind.UNDEFINED_VARIABLE, f"Undefined variable {name!r}"
            )
        if binding.moved:
            raise EvaluationError(
                EvaluationErrorKind.USE_AFTER_MOVE, f"use of moved value {name!r}"
            )
        return binding.value

    def assign(self, name: str, value: Any, borrowed_from: Binding | None = None) -> Binding:
        """Rebind an existing name in the frame that declared it."""
        env = self.owner_of(name)
        if env is None:
            raise EvaluationError(
                EvaluationErrorKind.UNDEFINED_VARIABLE, f"Undefined variable {name!r}"
            )
        if env.sealed:
            raise EvaluationError(
                EvaluationErrorKind.READ_ONLY_BINDING,
                f"Cannot assign to built-in {name!r}",
            )
        binding = env.bindings[name]
        binding.release()
        binding.value = value
        binding.moved = False
        binding.borrowed_from = borrowed_from
        if borrowed_from is not None:
            borrowed_from.borrows += 1
        return binding

    def release(self) -> None:
        """Discard this frame: end every borrow its bindings hold."""
        for binding in self.bindings.values():
            binding.release()

    def __repr__(self) -> str:
        return f"Environment({sorted(self.bindings)}, sealed={self.sealed})"
