"""Tree-walking evaluator for ownership-checked Recolon programs."""

from __future__ import annotations

import random
import sys
from contextlib import nullcontext
from typing import Any, TextIO

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
from recolon_runtime.config import get_config
from recolon_runtime.environment import Binding, Environment
from recolon_runtime.exceptions import EvaluationError, EvaluationErrorKind
from recolon_runtime.stdlib import build_stdlib, install
from recolon_runtime.values import (
    BoundMethod,
    Builtin,
    ClassValue,
    Function,
    Instance,
    Module,
    OverloadSet,
    display,
    is_number,
    is_truthy,
    type_name,
    values_equal,
)


# -- Control-flow signals ------------------------------------------------------

class BreakSignal(Exception):
    pass


class ContinueSignal(Exception):
    pass


class ReturnSignal(Exception):
    def __init__(self, value: Any):
        self.value = value
        super().__init__()


def _unwrap(node):
    while isinstance(node, Grouping):
        node = node.expression
    return node


class Interpreter:
    """Executes a Program against a fresh global environment.

    ``log`` output goes to *stdout*, ``err`` output to *stderr*.
    """

    def __init__(self, stdout: TextIO | None = None, stderr: TextIO | None = None,
                 config: dict | None = None):
        self.stdout = stdout if stdout is not None else sys.stdout
        self.stderr = stderr if stderr is not None else sys.stderr
        if config is None:
            config = get_config()
        runtime = config.get("runtime", {})
        self.max_call_depth = runtime.get("max_call_depth", 128)
        self.rng = random.Random(runtime.get("random_seed"))
        self.builtins = install(build_stdlib())
        self.globals = Environment(self.builtins)
        self.depth = 0

    def run(self, program: Program) -> None:
        for stmt in program.body:
            try:
                self.execute(stmt, self.globals)
            except RecursionError:
                raise EvaluationError(
                    EvaluationErrorKind.STACK_OVERFLOW,
                    "Statement nested too deeply to evaluate",
                    stmt.line,
                    stmt.col,
                ) from None

    # -- Statements --------------------------------------------------------

    def execute(self, node, env: Environment) -> None:
        try:
            self._execute(node, env)
        except EvaluationError as e:
            raise e.at(node.line, node.col) from None

    def _execute(self, node, env: Environment) -> None:
        if isinstance(node, VarDecl):
            value = None
            if node.initializer is not None:
                value = self.evaluate(node.initializer, env)
            env.define(node.name, value, self._borrow_source(node.initializer, env))

        elif isinstance(node, ExpressionStatement):
            self.evaluate(node.expression, env)

        elif isinstance(node, Block):
            self._execute_block(node.body, Environment(env))

        elif isinstance(node, IfStatement):
            if is_truthy(self.evaluate(node.condition, env)):
                self._execute_block(node.body, Environment(env))
                return
            for condition, body in node.elifs:
                if is_truthy(self.evaluate(condition, env)):
                    self._execute_block(body, Environment(env))
                    return
            if node.else_body is not None:
                self._execute_block(node.else_body, Environment(env))

        elif isinstance(node, WhileStatement):
            while is_truthy(self.evaluate(node.condition, env)):
                try:
                    self._execute_block(node.body, Environment(env))
                except BreakSignal:
                    break
                except ContinueSignal:
                    continue

        elif isinstance(node, ForStatement):
            self._execute_for(node, env)

        elif isinstance(node, ForInStatement):
            self._execute_for_in(node, env)

        elif isinstance(node, ComposeStatement):
            while True:
                try:
                    self._execute_block(node.body, Environment(env))
                except BreakSignal:
                    break
                except ContinueSignal:
                    continue

        elif isinstance(node, FunctionDecl):
            fn = Function(node, env)
            visible = env.resolve(node.name)
            if visible is not None and isinstance(visible.value, OverloadSet):
                overloads = visible.value.extend(fn)
            else:
                overloads = OverloadSet(node.name, [fn])
            env.define(node.name, overloads)

        elif isinstance(node, ClassDecl):
            self._execute_class(node, env)

        elif isinstance(node, ReturnStatement):
            value = None
            if node.value is not None:
                value = self.evaluate(node.value, env)
            raise ReturnSignal(value)

        elif isinstance(node, BreakStatement):
            raise BreakSignal()

        elif isinstance(node, ContinueStatement):
            raise ContinueSignal()

        else:
            raise TypeError(f"Unknown statement node: {type(node).__name__}")

    def _execute_block(self, stmts: list, env: Environment) -> None:
        try:
            for stmt in stmts:
                self.execute(stmt, env)
        finally:
            env.release()

    def _execute_for(self, node: ForStatement, env: Environment) -> None:
        loop_env = Environment(env)
        try:
            if node.initializer is not None:
                self.execute(node.initializer, loop_env)
            while node.condition is None or is_truthy(self.evaluate(node.condition, loop_env)):
                try:
                    self._execute_block(node.body, Environment(loop_env))
                except BreakSignal:
                    break
                except ContinueSignal:
                    pass
                if node.increment is not None:
                    self.evaluate(node.increment, loop_env)
        finally:
            loop_env.release()

    def _execute_for_in(self, node: ForInStatement, env: Environment) -> None:
        iterable = self.evaluate(node.iterable, env)
        if isinstance(iterable, list):
            items = list(iterable)
        elif isinstance(iterable, str):
            items = list(iterable)
        else:
            raise EvaluationError(
                EvaluationErrorKind.TYPE_MISMATCH,
                f"Cannot iterate over {type_name(iterable)}",
            )
        for item in items:
            body_env = Environment(env)
            body_env.define(node.variable, item)
            try:
                self._execute_block(node.body, body_env)
            except BreakSignal:
                break
            except ContinueSignal:
                continue

    def _execute_class(self, node: ClassDecl, env: Environment) -> None:
        parent = None
        if node.parent is not None:
            parent = env.lookup(node.parent)
            if not isinstance(parent, ClassValue):
                raise EvaluationError(
                    EvaluationErrorKind.TYPE_MISMATCH,
                    f"{node.name} cannot inherit from {type_name(parent)} {node.parent!r}",
                )
        methods: dict[str, list[Function]] = {}
        for decl in node.methods:
            methods.setdefault(decl.name, []).append(Function(decl, env))
        env.define(node.name, ClassValue(node.name, node.kind, parent, node.fields, methods, env))

    # -- Expressions -------------------------------------------------------

    def evaluate(self, node, env: Environment) -> Any:
        try:
            return self._evaluate(node, env)
        except EvaluationError as e:
            raise e.at(node.line, node.col) from None

    def _evaluate(self, node, env: Environment) -> Any:
        if isinstance(node, NumberLiteral):
            return float(node.value)
        if isinstance(node, StringLiteral):
            return node.value
        if isinstance(node, BooleanLiteral):
            return node.value
        if isinstance(node, NilLiteral):
            return None
        if isinstance(node, ArrayLiteral):
            return [self.evaluate(element, env) for element in node.elements]

        if isinstance(node, Variable):
            binding = self._binding(node.name, env)
            value = binding.value
            if node.moves or (node.consumes and isinstance(value, (list, Instance))):
                binding.moved = True
            return value

        if isinstance(node, This):
            return env.lookup("this")

        if isinstance(node, Borrow):
            return self._binding(node.name, env).value

        if isinstance(node, Grouping):
            return self.evaluate(node.expression, env)

        if isinstance(node, UnaryOp):
            operand = self.evaluate(node.operand, env)
            if node.op == "!":
                return not is_truthy(operand)
            if not is_number(operand):
                raise EvaluationError(
                    EvaluationErrorKind.TYPE_MISMATCH,
                    f"Operand of unary '-' must be a Number, got {type_name(operand)}",
                )
            return -operand

        if isinstance(node, BinaryOp):
            left = self.evaluate(node.left, env)
            right = self.evaluate(node.right, env)
            return self._binary(node.op, left, right)

        if isinstance(node, LogicalOp):
            left = self.evaluate(node.left, env)
            if node.op == "or":
                return left if is_truthy(left) else self.evaluate(node.right, env)
            return self.evaluate(node.right, env) if is_truthy(left) else left

        if isinstance(node, Call):
            callee = self.evaluate(node.callee, env)
            args = [self.evaluate(arg, env) for arg in node.args]
            return self.call(callee, args)

        if isinstance(node, FieldAccess):
            obj = self.evaluate(node.object, env)
            if isinstance(obj, (Instance, Module)):
                return obj.get(node.field_name)
            raise EvaluationError(
                EvaluationErrorKind.FIELD_NOT_FOUND,
                f"{type_name(obj)} has no field {node.field_name!r}",
            )

        if isinstance(node, IndexAccess):
            obj = self.evaluate(node.object, env)
            index = self.evaluate(node.index, env)
            if isinstance(obj, (list, str)):
                return obj[self._index(obj, index)]
            raise EvaluationError(
                EvaluationErrorKind.TYPE_MISMATCH, f"Cannot index into {type_name(obj)}"
            )

        if isinstance(node, Assign):
            value = self.evaluate(node.value, env)
            env.assign(node.name, value, self._borrow_source(node.value, env))
            return value

        if isinstance(node, FieldAssign):
            obj = self.evaluate(node.object, env)
            value = self.evaluate(node.value, env)
            if isinstance(obj, Instance):
                with self._mutable_borrow(node.object, env):
                    obj.set(node.field_name, value)
                return value
            if isinstance(obj, Module):
                raise EvaluationError(
                    EvaluationErrorKind.READ_ONLY_BINDING,
                    f"Cannot assign to {obj.name}.{node.field_name}",
                )
            raise EvaluationError(
                EvaluationErrorKind.FIELD_NOT_FOUND,
                f"{type_name(obj)} has no field {node.field_name!r}",
            )

        if isinstance(node, IndexAssign):
            obj = self.evaluate(node.object, env)
            index = self.evaluate(node.index, env)
            value = self.evaluate(node.value, env)
            if not isinstance(obj, list):
                raise EvaluationError(
                    EvaluationErrorKind.TYPE_MISMATCH,
                    f"Cannot assign into {type_name(obj)} by index",
                )
            with self._mutable_borrow(node.object, env):
                obj[self._index(obj, index)] = value
            return value

        raise TypeError(f"Unknown expression node: {type(node).__name__}")

    def _binding(self, name: str, env: Environment) -> Binding:
        binding = env.resolve(name)
        if binding is None:
            raise EvaluationError(
                EvaluationErrorKind.UNDEFINED_VARIABLE, f"Undefined variable {name!r}"
            )
        if binding.moved:
            raise EvaluationError(
                EvaluationErrorKind.USE_AFTER_MOVE, f"use of moved value {name!r}"
            )
        return binding

    def _mutable_borrow(self, target, env: Environment):
        """Mark the binding at the root of a write target as mutably borrowed."""
        target = _unwrap(target)
        while isinstance(target, (FieldAccess, IndexAccess)):
            target = _unwrap(target.object)
        if isinstance(target, Variable):
            binding = env.resolve(target.name)
            if binding is not None:
                return binding.mutable_borrow()
        return nullcontext()

    def _borrow_source(self, node, env: Environment) -> Binding | None:
        node = _unwrap(node)
        if isinstance(node, Borrow):
            return env.resolve(node.name)
        return None

    @staticmethod
    def _index(sequence, index: Any) -> int:
        if not is_number(index) or not index.is_integer():
            raise EvaluationError(
                EvaluationErrorKind.TYPE_MISMATCH,
                f"Index must be an integral Number, got {display(index)}",
            )
        position = int(index)
        if position < 0 or position >= len(sequence):
            raise EvaluationError(
                EvaluationErrorKind.INDEX_OUT_OF_RANGE,
                f"Index {position} out of range for length {len(sequence)}",
            )
        return position

    def _binary(self, op: str, left: Any, right: Any) -> Any:
        if op == "==":
            return values_equal(left, right)
        if op == "!=":
            return not values_equal(left, right)

        if op == "+":
            if type(left) is str or type(right) is str:
                return display(left) + display(right)
            self._require_numbers(op, left, right)
            return left + right

        if op in ("<", ">", "<=", ">="):
            if not (type(left) is str and type(right) is str):
                self._require_numbers(op, left, right)
            if op == "<":
                return left < right
            if op == ">":
                return left > right
            if op == "<=":
                return left <= right
            return left >= right

        self._require_numbers(op, left, right)
        if op == "-":
            return left - right
        if op == "*":
            return left * right
        if op == "/":
            if right == 0:
                raise EvaluationError(EvaluationErrorKind.DIVISION_BY_ZERO, "Division by zero")
            return left / right
        raise TypeError(f"Unknown operator: {op}")

    @staticmethod
    def _require_numbers(op: str, left: Any, right: Any) -> None:
        if not (is_number(left) and is_number(right)):
            raise EvaluationError(
                EvaluationErrorKind.TYPE_MISMATCH,
                f"Operands of {op!r} must be Numbers, got {type_name(left)} and {type_name(right)}",
            )

    # -- Calls -------------------------------------------------------------

    def call(self, callee: Any, args: list) -> Any:
        argc = len(args)

        if isinstance(callee, Builtin):
            if not callee.accepts(argc):
                raise EvaluationError(
                    EvaluationErrorKind.BAD_ARGUMENT,
                    f"{callee.name} expects {callee.arity} argument(s), got {argc}",
                )
            return callee.fn(self, args)

        if isinstance(callee, OverloadSet):
            fn = callee.resolve(argc)
            if fn is None:
                raise EvaluationError(
                    EvaluationErrorKind.NO_MATCHING_OVERLOAD,
                    f"No overload of {callee.name!r} takes {argc} argument(s); "
                    f"declared arities: {', '.join(map(str, callee.arities()))}",
                )
            return self.call_function(fn, args)

        if isinstance(callee, Function):
            if callee.arity != argc:
                raise EvaluationError(
                    EvaluationErrorKind.NO_MATCHING_OVERLOAD,
                    f"{callee.name!r} takes {callee.arity} argument(s), got {argc}",
                )
            return self.call_function(callee, args)

        if isinstance(callee, BoundMethod):
            klass = callee.instance.klass
            fn = klass.find_method(callee.name, argc)
            if fn is None:
                raise EvaluationError(
                    EvaluationErrorKind.NO_MATCHING_OVERLOAD,
                    f"No overload of {klass.name}.{callee.name} takes {argc} argument(s)",
                )
            return self.call_function(fn, args, this=callee.instance)

        if isinstance(callee, ClassValue):
            return self.instantiate(callee, args)

        raise EvaluationError(
            EvaluationErrorKind.NOT_CALLABLE, f"{type_name(callee)} is not callable"
        )

    def call_function(self, fn: Function, args: list, this: Instance | None = None) -> Any:
        if self.depth >= self.max_call_depth:
            raise EvaluationError(
                EvaluationErrorKind.STACK_OVERFLOW,
                f"Maximum call depth of {self.max_call_depth} exceeded in {fn.name!r}",
            )
        env = Environment(fn.closure)
        if this is not None:
            env.define("this", this)
        for param, arg in zip(fn.decl.params, args):
            env.define(param, arg)

        self.depth += 1
        try:
            self._execute_block(fn.decl.body, env)
        except ReturnSignal as signal:
            return signal.value
        except RecursionError:
            raise EvaluationError(
                EvaluationErrorKind.STACK_OVERFLOW,
                f"Call stack exhausted in {fn.name!r}",
            ) from None
        finally:
            self.depth -= 1
        return None

    def instantiate(self, klass: ClassValue, args: list) -> Instance:
        fields: dict[str, Any] = {}
        for ancestor in reversed(klass.lineage()):
            defaults_env = Environment(ancestor.closure)
            for decl in ancestor.fields:
                value = None
                if decl.initializer is not None:
                    value = self.evaluate(decl.initializer, defaults_env)
                fields[decl.name] = value
        instance = Instance(klass, fields)

        init = klass.find_method("init", len(args))
        if init is not None:
            self.call_function(init, args, this=instance)
        elif args or klass.has_method("init"):
            raise EvaluationError(
                EvaluationErrorKind.NO_MATCHING_OVERLOAD,
                f"No constructor of {klass.name} takes {len(args)} argument(s)",
            )
        return instance
