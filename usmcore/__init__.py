"""
usmcore
Userscript matching, scheduling and sandboxed execution.

    usmcore.match     wildcard patterns, per-script URL eligibility
    usmcore.schedule  run-at phases, script selection
    usmcore.sandbox   restricted interpreter, capabilities, relay, storage
    usmcore.page      page model, run indicator, lifecycle driver
    usmcore.catalog   scripts, settings, run ledger stores
    usmcore.bridge    selectForPhase / reportRun boundary
    usmcore.server    FastAPI app for remote hosts
    usmcore.proxy     mitmproxy host
"""

__version__ = "1.0.0"
