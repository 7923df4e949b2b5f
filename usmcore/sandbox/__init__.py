"""Module __init__: the execution sandbox."""
#
# PURPOSE:
# Runs untrusted userscripts so that a script can only touch what it is
# handed: four capability functions scoped to its own id.
#
# KEY MODULES:
# - validator.py: AST checks that reject imports, dunders, reflection
# - interpreter.py: wraps the body into an entry function with safe builtins
# - capabilities.py: GM_addStyle / GM_getValue / GM_setValue / GM_xmlhttpRequest
# - storage.py: origin-partitioned, script-scoped JSON key/value storage
# - relay.py: fire-and-forget HTTP on behalf of scripts (httpx)
# - executor.py: batch execution, failure isolation, run counting
#

from .executor import ExecutionSandbox, RunOutcome, describe_error
from .interpreter import CAPABILITY_NAMES, compile_script
from .relay import NetworkRelay
from .storage import OriginStorage, ScopedValueStore

__all__ = [
    "ExecutionSandbox",
    "RunOutcome",
    "describe_error",
    "CAPABILITY_NAMES",
    "compile_script",
    "NetworkRelay",
    "OriginStorage",
    "ScopedValueStore",
]
