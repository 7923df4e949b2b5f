"""
Static checks for userscript source.

Scripts are ordinary Python, minus everything that reaches past the four
capability functions:
  - import / from-import / global
  - class definitions
  - attributes starting with "_" (dunders and private attributes)
  - frame, code and generator introspection attributes
  - str.format / str.format_map (attribute lookups hidden in a string)
  - names starting with "__"
  - eval, exec, compile, open, getattr and the other reflective builtins
  - yield at script top level (the script body is a plain function call)

Everything else is allowed. The checks are best effort; they keep honest
scripts away from engine internals, they are not a security boundary.
"""

from __future__ import annotations

import ast
from typing import Any

from usmcore.base.exceptions import UnsafeScriptError

BLOCKED_NAMES = frozenset({
    "eval",
    "exec",
    "compile",
    "open",
    "getattr",
    "setattr",
    "delattr",
    "hasattr",
    "globals",
    "locals",
    "vars",
    "dir",
    "breakpoint",
    "input",
    "help",
    "exit",
    "quit",
    "memoryview",
    "object",
    "type",
})

BLOCKED_ATTRIBUTES = frozenset({
    "format",
    "format_map",
    "mro",
    "gi_frame",
    "gi_code",
    "gi_yieldfrom",
    "cr_frame",
    "cr_code",
    "cr_await",
    "ag_frame",
    "ag_code",
    "ag_await",
    "f_back",
    "f_builtins",
    "f_code",
    "f_globals",
    "f_locals",
    "tb_frame",
    "tb_next",
})


class _ScriptValidator(ast.NodeVisitor):
    def __init__(self):
        self.function_depth = 0

    def _reject(self, node: ast.AST, message: str) -> None:
        raise UnsafeScriptError(message, getattr(node, "lineno", None))

    def visit_Import(self, node: ast.Import) -> Any:
        self._reject(node, "import is not allowed")

    def visit_ImportFrom(self, node: ast.ImportFrom) -> Any:
        self._reject(node, "import is not allowed")

    def visit_Global(self, node: ast.Global) -> Any:
        self._reject(node, "global is not allowed")

    def visit_ClassDef(self, node: ast.ClassDef) -> Any:
        self._reject(node, "class definitions are not allowed")

    def visit_Name(self, node: ast.Name) -> Any:
        self._check_name(node, node.id)

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        self._check_attribute(node, node.attr)
        self.generic_visit(node)

    def visit_MatchClass(self, node: Any) -> Any:
        # case Foo(attr=...) reads attributes by name
        for attr in node.kwd_attrs:
            self._check_attribute(node, attr)
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef) -> Any:
        self._check_name(node, node.name)
        self._visit_function(node)

    def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> Any:
        self._check_name(node, node.name)
        self._visit_function(node)

    def visit_Lambda(self, node: ast.Lambda) -> Any:
        self._visit_function(node)

    def visit_arg(self, node: ast.arg) -> Any:
        self._check_name(node, node.arg)
        self.generic_visit(node)

    def visit_Yield(self, node: ast.Yield) -> Any:
        self._check_yield(node)

    def visit_YieldFrom(self, node: ast.YieldFrom) -> Any:
        self._check_yield(node)

    def _visit_function(self, node: ast.AST) -> None:
        self.function_depth += 1
        try:
            self.generic_visit(node)
        finally:
            self.function_depth -= 1

    def _check_yield(self, node: ast.AST) -> None:
        if self.function_depth == 0:
            self._reject(node, "yield is not allowed at script top level")
        self.generic_visit(node)

    def _check_name(self, node: ast.AST, name: str) -> None:
        if name.startswith("__"):
            self._reject(node, f"name {name!r} is not allowed")
        if name in BLOCKED_NAMES:
            self._reject(node, f"{name} is not available to scripts")

    def _check_attribute(self, node: ast.AST, attr: str) -> None:
        if attr.startswith("_"):
            self._reject(node, f"private attribute {attr!r} is not allowed")
        if attr in BLOCKED_ATTRIBUTES:
            self._reject(node, f"attribute {attr!r} is not allowed")


def validate_tree(tree: ast.AST) -> None:
    _ScriptValidator().visit(tree)


def validate_source(source: str, filename: str = "<userscript>") -> ast.Module:
    """Parse and validate; returns the tree. Raises UnsafeScriptError."""
    try:
        tree = ast.parse(source, filename=filename, mode="exec")
    except SyntaxError as e:
        raise UnsafeScriptError(f"invalid syntax: {e.msg}", e.lineno) from e
    validate_tree(tree)
    return tree
