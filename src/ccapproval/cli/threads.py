from __future__ import annotations

import argparse
from pathlib import Path

from ccapproval.config import load_settings
from ccapproval.store import JsonFileThreadStore


def configure_parser(subparsers: argparse._SubParsersAction) -> None:  # type: ignore[type-arg]
    parser = subparsers.add_parser("threads", help="Inspect session -> Slack thread mappings")
    parser.add_argument("--config", type=Path, help="Path to ccapproval.toml")
    threads_sub = parser.add_subparsers(dest="threads_command")

    list_parser = threads_sub.add_parser("list", help="List recorded threads")
    list_parser.set_defaults(func=run_threads_list)

    delete_parser = threads_sub.add_parser("delete", help="Forget the thread for a session")
    delete_parser.add_argument("session_id", help="Session id to forget")
    delete_parser.set_defaults(func=run_threads_delete)


def _open_store(args: argparse.Namespace) -> JsonFileThreadStore:
    settings = load_settings(config_path=args.config)
    return JsonFileThreadStore(settings.storage.threads_path)


def run_threads_list(args: argparse.Namespace) -> int:
    from rich.table import Table

    from ccapproval.cli.ui import console

    store = _open_store(args)
    mappings = sorted(store.list_all(), key=lambda m: m.updated_at, reverse=True)
    if not mappings:
        console.print(f"[info]No threads recorded in {store.path}[/info]")
        return 0

    table = Table(title=f"Threads ({store.path})")
    table.add_column("Session", style="cyan", no_wrap=True)
    table.add_column("Channel")
    table.add_column("Thread TS")
    table.add_column("Status")
    table.add_column("Updated", style="dim")

    status_styles = {"executing": "yellow", "done": "green", "failed": "red"}
    for mapping in mappings:
        style = status_styles.get(mapping.status, "white")
        table.add_row(
            mapping.session_id,
            mapping.channel_id,
            mapping.thread_ts,
            f"[{style}]{mapping.status}[/{style}]",
            mapping.updated_at,
        )
    console.print(table)
    return 0


def run_threads_delete(args: argparse.Namespace) -> int:
    from ccapproval.cli.ui import console, print_success

    store = _open_store(args)
    if store.get(args.session_id) is None:
        console.print(f"[warning]No thread recorded for session {args.session_id}[/warning]")
        return 1
    store.delete(args.session_id)
    print_success(f"Forgot thread for session {args.session_id}")
    return 0
