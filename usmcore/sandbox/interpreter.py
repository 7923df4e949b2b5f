"""
usmcore/sandbox/interpreter.py
Turns userscript source into an isolated callable.

The validated module body becomes the body of

    def __usm_entry__(GM_addStyle, GM_getValue, GM_setValue, GM_xmlhttpRequest):
        <script>

executed in a fresh namespace whose only content is a whitelisted builtins
table. The four capability functions are the entry's only parameters, so
the script reaches nothing else from the engine. A top-level `return` ends
the script early, like returning from any function.
"""

from __future__ import annotations

import ast
import builtins
import logging
from typing import Any, Callable, Dict, Optional

from usmcore.base.config import SandboxConfig, get_config
from usmcore.base.exceptions import UnsafeScriptError
from usmcore.sandbox.validator import validate_source

logger = logging.getLogger(__name__)

CAPABILITY_NAMES = ("GM_addStyle", "GM_getValue", "GM_setValue", "GM_xmlhttpRequest")

ENTRY_NAME = "__usm_entry__"

_ENTRY_TEMPLATE = f"def {ENTRY_NAME}({', '.join(CAPABILITY_NAMES)}):\n    pass\n"

SAFE_BUILTIN_NAMES = (
    # values and containers
    "bool", "bytes", "dict", "float", "frozenset", "int", "list", "set", "str", "tuple",
    # functions
    "abs", "all", "any", "callable", "chr", "divmod", "enumerate", "filter", "hash",
    "isinstance", "issubclass", "iter", "len", "map", "max", "min", "next", "ord",
    "pow", "range", "repr", "reversed", "round", "slice", "sorted", "sum", "zip",
    # exceptions scripts may raise or catch
    "Exception", "ArithmeticError", "AssertionError", "AttributeError", "IndexError",
    "KeyError", "LookupError", "NameError", "NotImplementedError", "RuntimeError",
    "StopIteration", "TypeError", "ValueError", "ZeroDivisionError",
    # constants
    "True", "False", "None", "NotImplemented", "Ellipsis",
)

SAFE_BUILTINS: Dict[str, Any] = {
    name: getattr(builtins, name) for name in SAFE_BUILTIN_NAMES if hasattr(builtins, name)
}

EntryPoint = Callable[..., Any]


def _script_print(script_logger: logging.Logger, label: str) -> Callable[..., None]:
    def print(*values: Any, sep: str = " ", end: str = "") -> None:
        script_logger.info("[%s] %s", label, sep.join(str(v) for v in values) + end)
    return print


def compile_script(
    source: str,
    script_id: Optional[int] = None,
    name: str = "",
    config: Optional[SandboxConfig] = None,
) -> EntryPoint:
    """
    Validate and compile `source`; returns the entry function.

    Raises UnsafeScriptError for oversized, malformed or disallowed source.
    """
    cfg = config or get_config().sandbox
    if len(source) > cfg.max_code_length:
        raise UnsafeScriptError(f"script is longer than {cfg.max_code_length} characters")

    filename = f"<userscript:{script_id}>"
    tree = validate_source(source, filename=filename)

    wrapper = ast.parse(_ENTRY_TEMPLATE, filename=filename, mode="exec")
    entry_def = wrapper.body[0]
    entry_def.body = tree.body or [ast.Pass()]
    ast.fix_missing_locations(wrapper)

    try:
        code = compile(wrapper, filename, "exec")
    except SyntaxError as e:
        # e.g. `await` outside an async function
        raise UnsafeScriptError(f"invalid syntax: {e.msg}", e.lineno) from e

    label = name or f"script {script_id}"
    namespace: Dict[str, Any] = {
        "__builtins__": dict(SAFE_BUILTINS, print=_script_print(logging.getLogger(cfg.script_logger), label)),
    }
    exec(code, namespace)
    return namespace.pop(ENTRY_NAME)
