#!/usr/bin/env python3

# First time:
#   chat-harvester save-state            # log in (scan the QR code), press Enter to save the session
#
# Then:
#   chat-harvester chats
#   chat-harvester open "Dana"
#   chat-harvester messages --chat "Dana" --csv out/dana.csv --report out/report.json
#   chat-harvester messages --chat "Dana" --all
#   chat-harvester resolve "dan"
#   chat-harvester send "Dana" "running late, 10 min"

import argparse
import asyncio
import os
import sys
from contextlib import asynccontextmanager
from datetime import date, datetime

from playwright.async_api import async_playwright

from . import config, export, trace
from .client import ChatHarvester
from .config import HarvestConfig, default_storage_state_file
from .playwright_surface import PlaywrightSurface

VIEWPORT = {"width": 1280, "height": 900}


@asynccontextmanager
async def browser_page(start_url: str, state_path: str, headless: bool):
    """Chromium page with the saved storage state loaded, navigated to start_url."""
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless)
        context_kwargs = {
            "viewport": VIEWPORT,
            "bypass_csp": True,
            "java_script_enabled": True,
        }
        if state_path and os.path.exists(state_path):
            context_kwargs["storage_state"] = state_path
            trace.log("state", f"Loaded storage state → {state_path}")
        else:
            trace.log("state", f"No storage state at {state_path}; run `save-state` first if login is needed")
        context = await browser.new_context(**context_kwargs)
        page = await context.new_page()
        try:
            await page.goto(start_url, wait_until="load", timeout=60_000)
            yield page
        finally:
            await context.close()
            await browser.close()


async def cmd_save_state(args) -> int:
    os.makedirs(os.path.dirname(args.state) or ".", exist_ok=True)
    print("=" * 60)
    print("Save Storage State")
    print("=" * 60)
    print(f"Start URL: {args.start_url}")
    print(f"Storage state will be saved to: {args.state}")
    print("=" * 60)

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=False)
        context = await browser.new_context(viewport=VIEWPORT, bypass_csp=True, java_script_enabled=True)
        page = await context.new_page()
        await page.goto(args.start_url, wait_until="load", timeout=60_000)
        print("\nInstructions:")
        print("   1. Complete the sign-in process in the browser window")
        print("   2. Wait until the chat list is visible")
        print("   3. Return here and press Enter to save the session state")
        await asyncio.get_running_loop().run_in_executor(None, input, "\nPress Enter here to save the session state... ")
        await context.storage_state(path=args.state)
        print(f"\nSaved storage state → {args.state}")
        await context.close()
        await browser.close()
    return 0


async def _ready_harvester(page, args) -> ChatHarvester:
    harvester = ChatHarvester(PlaywrightSurface(page), HarvestConfig.from_env())
    if not await harvester.wait_until_ready(timeout=args.ready_timeout):
        raise SystemExit("chat list never appeared (not logged in?)")
    return harvester


async def cmd_chats(args) -> int:
    async with browser_page(args.start_url, args.state, args.headless) as page:
        harvester = await _ready_harvester(page, args)
        result = await harvester.harvest_all_item_names()
    for name in result.names():
        print(name)
    return 0 if result.ok else 1


async def cmd_open(args) -> int:
    async with browser_page(args.start_url, args.state, args.headless) as page:
        harvester = await _ready_harvester(page, args)
        outcome = await harvester.open_item_by_name(args.name)
    if outcome.success:
        print(f"opened: {outcome.matched_name}")
        return 0
    print(f"failed: {outcome.reason}")
    return 1


async def cmd_messages(args) -> int:
    started = datetime.utcnow()
    reference = date.fromisoformat(args.date) if args.date else None
    report = export.new_report(export.hostname(args.start_url))

    async with browser_page(args.start_url, args.state, args.headless) as page:
        harvester = await _ready_harvester(page, args)
        if args.chat:
            outcome = await harvester.open_item_by_name(args.chat)
            export.record_navigation(report, args.chat, outcome)
            if not outcome.success:
                print(f"failed: {outcome.reason}")
                export.finish_report(report, started)
                if args.report:
                    export.save_report(report, args.report)
                return 1
        result = await harvester.harvest_history(reference)

    export.record_history(report, args.chat, result)
    records = list(result.iter_all()) if args.all else list(result.iter_reference_day())
    for m in records:
        print(f"[{m.timestamp}] {m.sender}: {m.text}")
    if args.csv:
        export.save_messages_csv(records, args.csv, chat=args.chat)
    export.finish_report(report, started)
    if args.report:
        export.save_report(report, args.report)
    return 0 if result.ok else 1


async def cmd_resolve(args) -> int:
    async with browser_page(args.start_url, args.state, args.headless) as page:
        harvester = await _ready_harvester(page, args)
        resolved = await harvester.resolve_against_list(args.query)
    flag = " (ambiguous)" if resolved.ambiguous else ""
    print(f"{resolved.query} -> {resolved.resolved}{flag}")
    return 0


async def cmd_send(args) -> int:
    started = datetime.utcnow()
    report = export.new_report(export.hostname(args.start_url))
    async with browser_page(args.start_url, args.state, args.headless) as page:
        harvester = await _ready_harvester(page, args)
        outcome = await harvester.send_to(args.name, args.text)
    export.record_navigation(report, args.name, outcome)
    export.log_action(report, "send", {"chat": args.name, "ok": outcome.success, "chars": len(args.text)})
    export.finish_report(report, started)
    if args.report:
        export.save_report(report, args.report)
    if outcome.success:
        print(f"sent to: {outcome.matched_name}")
        return 0
    print(f"failed: {outcome.reason}")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-harvester",
        description="Harvest chat names and message history from a chat web client.",
    )
    parser.add_argument("--start-url", default=config.START_URL)
    parser.add_argument("--state", default=None, help="Storage state file (default: profiles/storage/<host>.json)")
    parser.add_argument("--headless", action="store_true", default=config.HEADLESS)
    parser.add_argument("--ready-timeout", type=float, default=config.READY_TIMEOUT_SEC)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("save-state", help="Log in interactively and save the session")
    p.set_defaults(func=cmd_save_state)

    p = sub.add_parser("chats", help="Print every chat name")
    p.set_defaults(func=cmd_chats)

    p = sub.add_parser("open", help="Open one chat and verify it")
    p.add_argument("name")
    p.set_defaults(func=cmd_open)

    p = sub.add_parser("messages", help="Harvest messages of a chat")
    p.add_argument("--chat", help="Open this chat first (default: the chat already open)")
    p.add_argument("--all", action="store_true", help="Print every loaded message, not only the reference day")
    p.add_argument("--date", help="Reference day as YYYY-MM-DD (default: today)")
    p.add_argument("--csv", help="Write messages to this CSV file")
    p.add_argument("--report", help="Write a JSON harvest report to this file")
    p.set_defaults(func=cmd_messages)

    p = sub.add_parser("resolve", help="Resolve a partial name against the chat list")
    p.add_argument("query")
    p.set_defaults(func=cmd_resolve)

    p = sub.add_parser("send", help="Open one chat, verify it, then send a message")
    p.add_argument("name")
    p.add_argument("text")
    p.add_argument("--report", help="Write a JSON report to this file")
    p.set_defaults(func=cmd_send)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if not args.state:
        args.state = default_storage_state_file(args.start_url)
    return asyncio.run(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
