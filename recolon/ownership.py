"""Ownership and borrow analysis.

A single forward pass over the AST, run before execution, that tracks the
ownership state of every binding and rejects programs that use a moved-from
value or mutate a value while it is borrowed.

Value classes assigned to expressions:
- copy: Numbers, Strings, Booleans, Nil and operator results (copied on use)
- fresh: a newly allocated Array or Instance
- move: a read of a binding holding an Array/Instance, transferring it
- borrow: an explicit ``&name`` alias that leaves the source owned
- unknown: call results, field and index reads, parameters; never moved
  statically, the evaluator moves them when they hold an Array or Instance

State is kept per program point as a map from slot id to ``Slot``.  At the
join of an if/elif/else a binding is moved if it was moved on any branch
that reaches the join.  Loop bodies are analyzed twice so that a move in one
iteration is seen by the next.

Annotations added:
    VarDecl.ownership: value class of the initializer
    Variable.moves: True when the read transfers ownership
    Variable.consumes: True when a consuming read has no static class
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Iterator, NamedTuple

from recolon.ast_nodes import (
    Program,
    NumberLiteral,
    StringLiteral,
    BooleanLiteral,
    NilLiteral,
    ArrayLiteral,
    Variable,
    This,
    Borrow,
    Grouping,
    UnaryOp,
    BinaryOp,
    LogicalOp,
    Call,
    FieldAccess,
    IndexAccess,
    Assign,
    FieldAssign,
    IndexAssign,
    VarDecl,
    ExpressionStatement,
    Block,
    IfStatement,
    WhileStatement,
    ForStatement,
    ForInStatement,
    ComposeStatement,
    FunctionDecl,
    ClassDecl,
    ReturnStatement,
    BreakStatement,
    ContinueStatement,
)
from recolon.errors import NestingError, OwnershipError, OwnershipErrorKind, OwnershipErrors


class OwnershipState(Enum):
    """Ownership state of a binding.

    Mutable borrows are transient: only a runtime binding reports
    ``BORROWED_MUTABLE``, and only while a field or element write into its
    value is in progress.
    """

    OWNED = "Owned"
    MOVED = "Moved"
    BORROWED_IMMUTABLE = "BorrowedImmutable"
    BORROWED_MUTABLE = "BorrowedMutable"


COPY = "copy"
FRESH = "fresh"
MOVE = "move"
BORROW = "borrow"
UNKNOWN = "unknown"

REFERENCE_CLASSES = frozenset({FRESH, MOVE, BORROW})

# Callables that only ever borrow their arguments.
DEFAULT_BORROWING_CALLEES = frozenset({"log", "err"})


@dataclass(frozen=True)
class Slot:
    """Static ownership facts about one binding at one program point."""

    name: str
    moved: bool = False
    borrows: int = 0
    reference: bool = False
    is_borrow: bool = False

    @property
    def state(self) -> OwnershipState:
        if self.moved:
            return OwnershipState.MOVED
        if self.borrows:
            return OwnershipState.BORROWED_IMMUTABLE
        return OwnershipState.OWNED


FlowState = dict[int, Slot]


def merge_states(*states: FlowState | None) -> FlowState | None:
    """Join flow states conservatively; ``None`` marks an unreachable path."""
    live = [s for s in states if s is not None]
    if not live:
        return None
    merged = dict(live[0])
    for state in live[1:]:
        for sid, slot in state.items():
            prev = merged.get(sid)
            if prev is None:
                merged[sid] = slot
                continue
            merged[sid] = replace(
                prev,
                moved=prev.moved or slot.moved,
                borrows=max(prev.borrows, slot.borrows),
                reference=prev.reference or slot.reference,
                is_borrow=prev.is_borrow or slot.is_borrow,
            )
    return merged


class _Value(NamedTuple):
    kind: str
    sources: tuple[int, ...] = ()


class _Scope:
    def __init__(self, parent: _Scope | None = None, function_boundary: bool = False) -> None:
        self.parent = parent
        self.function_boundary = function_boundary
        self.names: dict[str, int] = {}
        self.slots: list[int] = []
        self.classes: set[str] = set()


@dataclass
class _LoopContext:
    scope: _Scope
    breaks: list = field(default_factory=list)
    continues: list = field(default_factory=list)


class OwnershipAnalyzer:
    """Check move and borrow rules over a parsed program.

    ``borrowing_callees`` names the global callables (and modules, for
    ``module.fn(...)`` calls) whose arguments are borrowed instead of
    moved; user code that shadows one of these names loses the exemption.
    """

    def __init__(
        self,
        program: Program,
        borrowing_callees: Iterable[str] = DEFAULT_BORROWING_CALLEES,
        max_errors: int = 20,
    ) -> None:
        self.program = program
        self.borrowing_callees = frozenset(borrowing_callees)
        self.max_errors = max_errors
        self._scope = _Scope()
        self._state: FlowState | None = {}
        self._loops: list[_LoopContext] = []
        self._active: list[set[int]] = []
        self._sources: dict[int, tuple[int, ...]] = {}
        self._errors: dict[tuple, OwnershipError] = {}
        self._next_slot = 0

    # -- Entry point -------------------------------------------------------

    def analyze(self) -> Program:
        """Annotate the program in place, or raise ``OwnershipErrors``."""
        for stmt in self.program.body:
            try:
                self._analyze_stmt(stmt)
            except RecursionError:
                raise NestingError(
                    "statement nested too deeply to analyze", stmt.line, stmt.col
                ) from None
        if self._errors:
            errors = sorted(self._errors.values(), key=lambda e: (e.line, e.column))
            raise OwnershipErrors(errors[: self.max_errors])
        return self.program

    # -- Diagnostics -------------------------------------------------------

    def _report(self, kind: OwnershipErrorKind, message: str, node, name: str) -> None:
        key = (kind, node.line, node.col, message)
        if key not in self._errors:
            self._errors[key] = OwnershipError(kind, message, node.line, node.col, name=name)

    # -- Scopes and slots --------------------------------------------------

    @contextmanager
    def _enter_scope(self, function_boundary: bool = False) -> Iterator[_Scope]:
        scope = _Scope(self._scope, function_boundary)
        self._scope = scope
        try:
            yield scope
        finally:
            self._scope = scope.parent
            if self._state is not None:
                self._release(scope, self._state)

    def _release(self, scope: _Scope, state: FlowState) -> None:
        """Drop a scope's bindings and end the borrows they held."""
        for sid in scope.slots:
            for src in self._sources.get(sid, ()):
                slot = state.get(src)
                if slot is not None:
                    state[src] = replace(slot, borrows=max(0, slot.borrows - 1))
            state.pop(sid, None)

    def _declare(self, name: str, value: _Value = _Value(COPY)) -> int:
        sid = self._next_slot
        self._next_slot += 1
        self._scope.names[name] = sid
        self._scope.slots.append(sid)
        if self._state is not None:
            self._state[sid] = Slot(
                name,
                reference=value.kind in REFERENCE_CLASSES,
                is_borrow=value.kind == BORROW,
            )
            self._add_borrows(sid, value)
        return sid

    def _add_borrows(self, sid: int, value: _Value) -> None:
        if value.kind != BORROW or not value.sources:
            return
        self._sources[sid] = self._sources.get(sid, ()) + value.sources
        for src in value.sources:
            slot = self._state.get(src)
            if slot is not None:
                self._state[src] = replace(slot, borrows=slot.borrows + 1)

    def _resolve(self, name: str) -> tuple[int | None, bool]:
        """Return the slot bound to *name* and whether it is captured."""
        scope = self._scope
        captured = False
        while scope is not None:
            if name in scope.names:
                return scope.names[name], captured
            if scope.function_boundary:
                captured = True
            scope = scope.parent
        return None, False

    def _is_class(self, name: str) -> bool:
        scope = self._scope
        while scope is not None:
            if name in scope.names:
                return name in scope.classes
            scope = scope.parent
        return False

    def _slot(self, sid: int | None) -> Slot | None:
        if sid is None or self._state is None:
            return None
        return self._state.get(sid)

    def _copy(self) -> FlowState | None:
        return dict(self._state) if self._state is not None else None

    # -- Statements --------------------------------------------------------

    def _analyze_body(self, stmts: list) -> None:
        for stmt in stmts:
            if self._state is None:
                break  # unreachable code
            self._analyze_stmt(stmt)

    def _analyze_stmt(self, node) -> None:
        if isinstance(node, VarDecl):
            value = self._full_expr(node.initializer, consume=True)
            node.ownership = value.kind
            self._declare(node.name, value)
        elif isinstance(node, ExpressionStatement):
            self._full_expr(node.expression)
        elif isinstance(node, Block):
            with self._enter_scope():
                self._analyze_body(node.body)
        elif isinstance(node, IfStatement):
            self._analyze_if(node)
        elif isinstance(node, WhileStatement):
            self._analyze_loop(node.body, condition=node.condition, natural_exit=True)
        elif isinstance(node, ForStatement):
            with self._enter_scope():
                if node.initializer is not None:
                    self._analyze_stmt(node.initializer)
                if self._state is not None:
                    self._analyze_loop(
                        node.body,
                        condition=node.condition,
                        increment=node.increment,
                        natural_exit=node.condition is not None,
                    )
        elif isinstance(node, ForInStatement):
            self._full_expr(node.iterable)
            self._analyze_loop(node.body, variable=node.variable, natural_exit=True)
        elif isinstance(node, ComposeStatement):
            self._analyze_loop(node.body, natural_exit=False)
        elif isinstance(node, FunctionDecl):
            self._declare(node.name)
            self._analyze_function(node)
        elif isinstance(node, ClassDecl):
            self._analyze_class(node)
        elif isinstance(node, ReturnStatement):
            if node.value is not None:
                self._full_expr(node.value, consume=True)
            self._state = None
        elif isinstance(node, BreakStatement):
            self._loops[-1].breaks.append(self._exit_state(self._loops[-1]))
            self._state = None
        elif isinstance(node, ContinueStatement):
            self._loops[-1].continues.append(self._exit_state(self._loops[-1]))
            self._state = None

    def _exit_state(self, ctx: _LoopContext) -> FlowState:
        """State seen at the loop boundary when jumping out of nested scopes."""
        state = dict(self._state)
        scope = self._scope
        while scope is not None and scope is not ctx.scope:
            self._release(scope, state)
            scope = scope.parent
        return state

    def _analyze_if(self, node: IfStatement) -> None:
        self._full_expr(node.condition)
        outcomes: list[FlowState | None] = []

        fallthrough = self._copy()
        with self._enter_scope():
            self._analyze_body(node.body)
        outcomes.append(self._state)

        for condition, body in node.elifs:
            self._state = dict(fallthrough)
            self._full_expr(condition)
            fallthrough = self._copy()
            with self._enter_scope():
                self._analyze_body(body)
            outcomes.append(self._state)

        self._state = dict(fallthrough)
        if node.else_body is not None:
            with self._enter_scope():
                self._analyze_body(node.else_body)
        outcomes.append(self._state)

        self._state = merge_states(*outcomes)

    def _analyze_loop(
        self,
        body: list,
        condition=None,
        increment=None,
        variable: str | None = None,
        natural_exit: bool = True,
    ) -> None:
        entry = self._copy()
        exits: list[FlowState | None] = []

        for _ in range(2):
            ctx = _LoopContext(scope=self._scope)
            self._loops.append(ctx)
            try:
                if condition is not None:
                    self._full_expr(condition)
                if natural_exit:
                    exits.append(self._copy())
                with self._enter_scope():
                    if variable is not None:
                        self._declare(variable, _Value(UNKNOWN))
                    self._analyze_body(body)
            finally:
                self._loops.pop()

            self._state = merge_states(self._state, *ctx.continues)
            if increment is not None and self._state is not None:
                self._full_expr(increment)
            exits.extend(ctx.breaks)
            self._state = merge_states(entry, self._state)

        self._state = merge_states(*exits)

    def _analyze_function(self, node: FunctionDecl) -> None:
        if self._state is None:
            return
        saved = (self._state, self._loops, self._active)
        self._state = dict(self._state)
        self._loops = []
        self._active = []
        try:
            with self._enter_scope(function_boundary=True):
                for param in node.params:
                    self._declare(param, _Value(UNKNOWN))
                self._analyze_body(node.body)
        finally:
            self._state, self._loops, self._active = saved

    def _analyze_class(self, node: ClassDecl) -> None:
        if node.parent is not None:
            self._full_expr(Variable(name=node.parent, line=node.line, col=node.col))
        self._declare(node.name)
        self._scope.classes.add(node.name)

        # Field defaults run at instantiation time, inside the class closure.
        saved = (self._state, self._loops, self._active)
        self._state = dict(self._state)
        self._loops = []
        self._active = []
        try:
            with self._enter_scope(function_boundary=True):
                for decl in node.fields:
                    if decl.initializer is not None:
                        decl.ownership = self._full_expr(decl.initializer, consume=True).kind
                    else:
                        decl.ownership = COPY
        finally:
            self._state, self._loops, self._active = saved

        for method in node.methods:
            self._analyze_function(method)

    # -- Expressions -------------------------------------------------------

    def _full_expr(self, node, consume: bool = False) -> _Value:
        """Analyze *node* with its own set of transient borrows."""
        if node is None:
            return _Value(COPY)
        self._active.append(set())
        try:
            return self._expr(node, consume)
        finally:
            self._active.pop()

    def _expr(self, node, consume: bool = False) -> _Value:
        if self._state is None:
            return _Value(UNKNOWN)

        if isinstance(node, (NumberLiteral, StringLiteral, BooleanLiteral, NilLiteral)):
            return _Value(COPY)

        if isinstance(node, ArrayLiteral):
            for element in node.elements:
                self._expr(element, consume=True)
            return _Value(FRESH)

        if isinstance(node, Variable):
            return self._move(node) if consume else self._read(node)

        if isinstance(node, This):
            return _Value(UNKNOWN)

        if isinstance(node, Borrow):
            return self._borrow(node)

        if isinstance(node, Grouping):
            return self._expr(node.expression, consume)

        if isinstance(node, UnaryOp):
            self._expr(node.operand)
            return _Value(COPY)

        if isinstance(node, BinaryOp):
            self._expr(node.left)
            self._expr(node.right)
            return _Value(COPY)

        if isinstance(node, LogicalOp):
            self._expr(node.left)
            skipped = self._copy()
            self._expr(node.right)
            self._state = merge_states(skipped, self._state)
            return _Value(UNKNOWN)

        if isinstance(node, Call):
            return self._call(node)

        if isinstance(node, FieldAccess):
            self._expr(node.object)
            return _Value(UNKNOWN)

        if isinstance(node, IndexAccess):
            self._expr(node.object)
            self._expr(node.index)
            return _Value(UNKNOWN)

        if isinstance(node, Assign):
            self._assign(node)
            return _Value(UNKNOWN)

        if isinstance(node, (FieldAssign, IndexAssign)):
            self._mutate(node)
            return _Value(UNKNOWN)

        return _Value(UNKNOWN)

    def _read(self, node: Variable) -> _Value:
        """A non-consuming use: a transient immutable borrow."""
        sid, _ = self._resolve(node.name)
        slot = self._slot(sid)
        if slot is None:
            return _Value(UNKNOWN)
        if slot.moved:
            self._report(
                OwnershipErrorKind.USE_AFTER_MOVE,
                f"use of moved value {node.name!r}",
                node,
                node.name,
            )
        if self._active:
            self._active[-1].add(sid)
        if slot.is_borrow:
            return _Value(BORROW, self._sources.get(sid, ()))
        return _Value(COPY if not slot.reference else UNKNOWN)

    def _move(self, node: Variable) -> _Value:
        """A consuming use: transfer ownership out of the binding."""
        sid, captured = self._resolve(node.name)
        slot = self._slot(sid)
        if slot is None:
            return _Value(UNKNOWN)
        if slot.moved:
            self._report(
                OwnershipErrorKind.USE_AFTER_MOVE,
                f"use of moved value {node.name!r}",
                node,
                node.name,
            )
            return _Value(MOVE)
        if slot.is_borrow:
            return _Value(BORROW, self._sources.get(sid, ()))
        if not slot.reference:
            # Copy or unknown: the evaluator moves it if it holds an Array or Instance.
            node.consumes = True
            return _Value(COPY)
        if captured:
            self._report(
                OwnershipErrorKind.CONFLICTING_BORROW,
                f"cannot move captured value {node.name!r} out of its enclosing scope",
                node,
                node.name,
            )
            return _Value(MOVE)
        if slot.borrows:
            self._report(
                OwnershipErrorKind.CONFLICTING_BORROW,
                f"cannot move {node.name!r} while it is borrowed",
                node,
                node.name,
            )
            return _Value(MOVE)
        self._state[sid] = replace(slot, moved=True)
        node.moves = True
        return _Value(MOVE)

    def _borrow(self, node: Borrow) -> _Value:
        sid, _ = self._resolve(node.name)
        slot = self._slot(sid)
        if slot is None:
            return _Value(UNKNOWN)
        if slot.moved:
            self._report(
                OwnershipErrorKind.USE_AFTER_MOVE,
                f"cannot borrow moved value {node.name!r}",
                node,
                node.name,
            )
        if self._active:
            self._active[-1].add(sid)
        if slot.is_borrow:
            return _Value(BORROW, self._sources.get(sid, ()))
        return _Value(BORROW, (sid,))

    def _is_borrowing_callee(self, callee) -> bool:
        while isinstance(callee, Grouping):
            callee = callee.expression
        if isinstance(callee, FieldAccess):
            callee = callee.object
        if not isinstance(callee, Variable):
            return False
        sid, _ = self._resolve(callee.name)
        return sid is None and callee.name in self.borrowing_callees

    def _call(self, node: Call) -> _Value:
        borrowing = self._is_borrowing_callee(node.callee)
        instantiates = isinstance(node.callee, Variable) and self._is_class(node.callee.name)
        self._expr(node.callee)
        for arg in node.args:
            self._expr(arg, consume=not borrowing)
        return _Value(FRESH if instantiates else UNKNOWN)

    def _nested(self, node, consume: bool = False) -> _Value:
        """Analyze a sub-expression whose borrows end before its parent acts."""
        self._active.append(set())
        try:
            return self._expr(node, consume)
        finally:
            self._active.pop()

    def _assign(self, node: Assign) -> None:
        value = self._nested(node.value, consume=True)
        sid, _ = self._resolve(node.name)
        slot = self._slot(sid)
        if slot is None:
            return
        if slot.borrows and slot.reference:
            self._report(
                OwnershipErrorKind.CONFLICTING_BORROW,
                f"cannot assign to {node.name!r} while it is borrowed",
                node,
                node.name,
            )
            return
        self._state[sid] = replace(
            slot,
            moved=False,
            reference=value.kind in REFERENCE_CLASSES,
            is_borrow=value.kind == BORROW,
        )
        self._add_borrows(sid, value)

    def _target_root(self, node) -> Variable | None:
        """Walk a field/index target down to the binding it mutates."""
        if isinstance(node, Grouping):
            return self._target_root(node.expression)
        if isinstance(node, Variable):
            sid, _ = self._resolve(node.name)
            slot = self._slot(sid)
            if slot is not None and slot.moved:
                self._report(
                    OwnershipErrorKind.USE_AFTER_MOVE,
                    f"use of moved value {node.name!r}",
                    node,
                    node.name,
                )
            return node
        if isinstance(node, FieldAccess):
            return self._target_root(node.object)
        if isinstance(node, IndexAccess):
            root = self._target_root(node.object)
            self._nested(node.index)
            return root
        self._expr(node)
        return None

    def _mutate(self, node: FieldAssign | IndexAssign) -> None:
        root = self._target_root(node.object)
        if isinstance(node, IndexAssign):
            self._nested(node.index)
        self._nested(node.value, consume=True)
        if root is None or self._state is None:
            return

        sid, _ = self._resolve(root.name)
        slot = self._slot(sid)
        if slot is None:
            return
        if any(sid in frame for frame in self._active):
            message = f"cannot mutate {root.name!r} while it is borrowed in the same expression"
        elif slot.borrows:
            message = f"cannot mutate {root.name!r} while it is borrowed"
        elif slot.is_borrow:
            message = f"cannot mutate through immutable borrow {root.name!r}"
        else:
            return
        self._report(OwnershipErrorKind.CONFLICTING_BORROW, message, node, root.name)

