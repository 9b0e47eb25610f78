from __future__ import annotations

import ast
from typing import Callable

LAMBDA_SCOPE = "<lambda>"


def dotted_name(node: ast.AST) -> str | None:
    """Return ``a.b.c`` for a pure name/attribute chain, else ``None``."""
    parts: list[str] = []
    current: ast.AST = node
    while isinstance(current, ast.Attribute):
        parts.append(current.attr)
        current = current.value
    if not isinstance(current, ast.Name):
        return None
    parts.append(current.id)
    return ".".join(reversed(parts))


class ImportVisitor(ast.NodeVisitor):
    def __init__(self, module_name: str, table) -> None:
        self.module = module_name
        self.table = table

    def visit_Import(self, node: ast.Import) -> None:
        for alias in node.names:
            if alias.asname:
                self.table.imports[(self.module, alias.asname)] = alias.name
            else:
                # ``import a.b`` binds ``a`` locally.
                head = alias.name.split(".")[0]
                self.table.imports[(self.module, head)] = head

    def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
        if not node.module and node.level == 0:
            return
        if node.level > 0:
            parts = self.module.split(".")
            if self.table.is_package(self.module):
                parts.append("__init__")
            if node.level > len(parts):
                return
            base = parts[:-node.level]
            if node.module:
                base.append(node.module)
            source = ".".join(base)
        else:
            source = node.module or ""
        for alias in node.names:
            if alias.name == "*":
                continue
            local = alias.asname or alias.name
            fqn = f"{source}.{alias.name}" if source else alias.name
            self.table.imports[(self.module, local)] = fqn


class ConstantVisitor(ast.NodeVisitor):
    """Record string bindings keyed by ``module[.scope...].NAME``.

    Only bindings of names to string literals, one name per literal, are
    resolvable. Any other binding of the same key marks it ambiguous.
    """

    def __init__(self, module_name: str, table) -> None:
        self.module = module_name
        self.table = table
        self.scopes: list[str] = []
        self.globals: list[set[str]] = []

    def _key(self, name: str) -> str:
        if self.globals and name in self.globals[-1]:
            return f"{self.module}.{name}"
        return ".".join([self.module, *self.scopes, name])

    def _scoped(self, node: ast.AST, name: str) -> None:
        self.scopes.append(name)
        self.globals.append(set())
        try:
            self.generic_visit(node)
        finally:
            self.globals.pop()
            self.scopes.pop()

    def _mark_parameters(self, args: ast.arguments) -> None:
        # Parameters shadow any outer constant of the same name.
        for arg in [*args.posonlyargs, *args.args, *args.kwonlyargs, args.vararg, args.kwarg]:
            if arg is not None:
                self.table.mark_ambiguous(self._key(arg.arg))

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        self._scoped(node, node.name)

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        for decorator in node.decorator_list:
            self.visit(decorator)
        self.visit(node.args)
        self.scopes.append(node.name)
        self.globals.append(set())
        try:
            self._mark_parameters(node.args)
            for stmt in node.body:
                self.visit(stmt)
        finally:
            self.globals.pop()
            self.scopes.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_function(node)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self.visit(node.args)
        self.scopes.append(LAMBDA_SCOPE)
        self.globals.append(set())
        try:
            self._mark_parameters(node.args)
            self.visit(node.body)
        finally:
            self.globals.pop()
            self.scopes.pop()

    def visit_Global(self, node: ast.Global) -> None:
        if self.globals:
            self.globals[-1].update(node.names)

    def _bind(self, target: ast.AST, value: ast.AST | None) -> None:
        if isinstance(target, ast.Name):
            if isinstance(value, ast.Constant) and isinstance(value.value, str):
                self.table.bind_constant(self._key(target.id), value.value)
            else:
                self.table.mark_ambiguous(self._key(target.id))
            return
        if isinstance(target, (ast.Tuple, ast.List)):
            if isinstance(value, (ast.Tuple, ast.List)) and len(value.elts) == len(
                target.elts
            ):
                for lhs, rhs in zip(target.elts, value.elts):
                    self._bind(lhs, rhs)
                return
        for node in ast.walk(target):
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Store):
                self.table.mark_ambiguous(self._key(node.id))

    def visit_Assign(self, node: ast.Assign) -> None:
        for target in node.targets:
            self._bind(target, node.value)
        self.visit(node.value)

    def visit_AnnAssign(self, node: ast.AnnAssign) -> None:
        if node.value is None:
            return
        self._bind(node.target, node.value)
        self.visit(node.value)

    def visit_Name(self, node: ast.Name) -> None:
        # Any other binding form (for, with, walrus, augmented assignment).
        if isinstance(node.ctx, ast.Store):
            self.table.mark_ambiguous(self._key(node.id))


class LockCallVisitor(ast.NodeVisitor):
    """Depth-first, source-order walk reporting lock calls with their scopes.

    ``on_lock_call`` receives the call, the enclosing function (``None`` at
    module or class level) and the lexical scope names used for constant
    lookup. Arguments of a matched call are not searched further.
    """

    def __init__(
        self,
        *,
        is_lock_call: Callable[[ast.Call], bool],
        on_lock_call: Callable[
            [ast.Call, ast.FunctionDef | ast.AsyncFunctionDef | None, tuple[tuple[str, str], ...]],
            None,
        ],
    ) -> None:
        self.is_lock_call = is_lock_call
        self.on_lock_call = on_lock_call
        self.functions: list[ast.FunctionDef | ast.AsyncFunctionDef] = []
        self.scopes: list[tuple[str, str]] = []

    def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> None:
        # Decorators, defaults and annotations evaluate in the outer scope.
        for decorator in node.decorator_list:
            self.visit(decorator)
        self.visit(node.args)
        if node.returns is not None:
            self.visit(node.returns)
        self.functions.append(node)
        self.scopes.append((node.name, "function"))
        try:
            for stmt in node.body:
                self.visit(stmt)
        finally:
            self.scopes.pop()
            self.functions.pop()

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
        self._visit_function(node)

    def visit_Lambda(self, node: ast.Lambda) -> None:
        # Lambda parameters shadow constants but the enclosing def stays the scope key.
        self.visit(node.args)
        self.scopes.append((LAMBDA_SCOPE, "function"))
        try:
            self.visit(node.body)
        finally:
            self.scopes.pop()

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        for decorator in node.decorator_list:
            self.visit(decorator)
        for base in node.bases:
            self.visit(base)
        for keyword in node.keywords:
            self.visit(keyword)
        self.scopes.append((node.name, "class"))
        try:
            for stmt in node.body:
                self.visit(stmt)
        finally:
            self.scopes.pop()

    def visit_Call(self, node: ast.Call) -> None:
        if self.is_lock_call(node):
            enclosing = self.functions[-1] if self.functions else None
            self.on_lock_call(node, enclosing, tuple(self.scopes))
            return
        self.generic_visit(node)
