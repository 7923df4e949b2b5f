"""
MiniUSM CLI: one entrypoint for the engine.

Usage examples:
    usm serve
    usm proxy
    usm select https://example.com/ --phase document-end
    usm select https://example.com/ --explain
    usm add ./hello.user.py
    usm settings --safe-mode on --pause-host example.com
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from usmcore.base.config import get_config, setup_logging
from usmcore.base.exceptions import UsmError
from usmcore.catalog.metadata import script_from_source
from usmcore.catalog.sqlite_store import SqliteCatalogStore
from usmcore.schedule.phase import PHASE_ORDER
from usmcore.schedule.selector import ScriptSelector, normalize_host

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="usm", description="MiniUSM userscript engine")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the engine API")
    sub.add_parser("proxy", help="Run the userscript proxy")

    select = sub.add_parser("select", help="Show the batch a page would run")
    select.add_argument("url")
    select.add_argument("--phase", choices=[p.value for p in PHASE_ORDER], default="document-end")
    select.add_argument("--explain", action="store_true", help="Show every script and why it is (not) in scope")

    add = sub.add_parser("add", help="Add a userscript file to the catalog")
    add.add_argument("file", type=Path)
    add.add_argument("--disabled", action="store_true", help="Add the script switched off")

    settings = sub.add_parser("settings", help="Show or change engine settings")
    settings.add_argument("--safe-mode", choices=["on", "off"])
    settings.add_argument("--pause-host", action="append", default=[], metavar="HOST")
    settings.add_argument("--resume-host", action="append", default=[], metavar="HOST")

    return parser


def _bare_host(value: str) -> str:
    # Accept either "example.com" or a full URL
    if "://" not in value:
        value = f"http://{value}"
    return normalize_host(value)


async def _select(args) -> int:
    store = SqliteCatalogStore()
    try:
        selector = ScriptSelector(store)
        if args.explain:
            for verdict in await selector.explain(args.url):
                mark = "+" if verdict.runnable else "-"
                pattern = f" ({verdict.decision.pattern})" if verdict.decision.pattern else ""
                note = f" [{verdict.note}]" if verdict.note else ""
                print(
                    f"{mark} #{verdict.script.id} {verdict.script.name}: "
                    f"{verdict.decision.reason.value}{pattern}{note}"
                )
            return 0

        batch = await selector.select(args.url, args.phase)
        if not batch:
            print(f"No scripts for {args.url} at {args.phase}")
        for script in batch:
            print(f"#{script.id} {script.name} ({script.effective_run_at})")
        return 0
    finally:
        await store.close()


async def _add(args) -> int:
    source = args.file.read_text(encoding="utf-8")
    script = script_from_source(source, enabled=not args.disabled)
    store = SqliteCatalogStore()
    try:
        saved = await store.add_script(script)
    finally:
        await store.close()
    print(f"Added #{saved.id} {saved.name} ({saved.effective_run_at})")
    return 0


async def _settings(args) -> int:
    store = SqliteCatalogStore()
    try:
        settings = await store.get_settings()
        changed = False

        if args.safe_mode is not None:
            settings.safe_mode = args.safe_mode == "on"
            changed = True
        for host in args.pause_host:
            host = _bare_host(host)
            if host and host not in settings.script_disabled_hosts:
                settings.script_disabled_hosts.append(host)
                changed = True
        for host in args.resume_host:
            host = _bare_host(host)
            if host in settings.script_disabled_hosts:
                settings.script_disabled_hosts.remove(host)
                changed = True

        if changed:
            await store.save_settings(settings)
        print(json.dumps(settings.to_dict(), indent=2))
        return 0
    finally:
        await store.close()


async def _proxy() -> int:
    from usmcore.bridge.local import LocalBridge
    from usmcore.proxy.addon import UserscriptProxy

    store = SqliteCatalogStore()
    proxy = UserscriptProxy(LocalBridge(store))
    try:
        await proxy.start()
        await proxy.wait()
    finally:
        proxy.stop()
        await store.close()
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    setup_logging(config)

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "usmcore.server.api:create_app",
            factory=True,
            host=config.api_host,
            port=config.api_port,
            reload=config.debug,
        )
        return 0

    handlers = {
        "select": lambda: _select(args),
        "add": lambda: _add(args),
        "settings": lambda: _settings(args),
        "proxy": _proxy,
    }
    try:
        return asyncio.run(handlers[args.command]())
    except KeyboardInterrupt:
        return 130
    except (UsmError, OSError) as e:
        logger.error(f"[CLI] {args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
