#!/usr/bin/env python3
"""
arena-slides - terminal front end for the slide orchestrator

    arena-slides login --email me@example.com
    arena-slides search bracket --type item
    arena-slides generate --number 100-00042 --number ECO-00017 -o review.pptx
    arena-slides refresh review.pptx
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from arena_slides.core.config import get_config
from arena_slides.core.datashapes import DetailLevel, OperationResult, RecordType
from arena_slides.core.error_handler import ErrorHandler
from arena_slides.core.logging_utils import setup_logging
from arena_slides.orchestrator import SlideOrchestrator
from arena_slides.plm.normalizer import infer_record_type
from arena_slides.presentation.writer import LAYOUTS

console = Console()

RECORD_TYPES = [record_type.value for record_type in RecordType]
DETAIL_LEVELS = [level.value for level in DetailLevel]


def _ask_password() -> Optional[str]:
    return Prompt.ask("Arena password", password=True) or None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="arena-slides",
                                     description="Generate PowerPoint slides from Arena PLM records.")
    parser.add_argument("--debug", action="store_true", help="Verbose logging and error alerts.")
    sub = parser.add_subparsers(dest="command")

    login_cmd = sub.add_parser("login", help="Log in to Arena.")
    login_cmd.add_argument("--email", help="Arena account email.")
    login_cmd.add_argument("--workspace", help="Workspace id (optional).")

    sub.add_parser("logout", help="End the Arena session.")
    sub.add_parser("status", help="Show session and preference status.")

    search_cmd = sub.add_parser("search", help="Search records.")
    search_cmd.add_argument("term", help="Substring to look for.")
    search_cmd.add_argument("--type", choices=RECORD_TYPES, default="item", help="Record type.")
    search_cmd.add_argument("--full-text", action="store_true", help="Match anywhere in the record.")
    search_cmd.add_argument("--save-as", help="Save the matches as a named collection.")

    for name, help_text in (("generate", "One slide per record."),
                            ("collection-slides", "AI-proposed slides for a whole collection.")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--number", action="append", default=[], help="Record number (repeatable).")
        cmd.add_argument("--type", choices=RECORD_TYPES, help="Type of every --number (inferred if omitted).")
        cmd.add_argument("--collection", help="Use a saved collection as the selection.")
        cmd.add_argument("-o", "--output", required=True, help="Output .pptx path.")
        cmd.add_argument("--intent", default="", help="What the presentation is for.")
        cmd.add_argument("--no-images", action="store_true", help="Do not embed item images.")
        if name == "generate":
            cmd.add_argument("--detail", choices=DETAIL_LEVELS, help="Override the saved detail level.")
        else:
            cmd.add_argument("--save-as", help="Also save the selection as a named collection.")

    refresh_cmd = sub.add_parser("refresh", help="Refresh generated slides in a deck.")
    refresh_cmd.add_argument("path", help="Existing .pptx path.")
    refresh_cmd.add_argument("--intent", default="", help="What the presentation is for.")
    refresh_cmd.add_argument("--no-images", action="store_true", help="Do not embed item images.")

    schema_cmd = sub.add_parser("schema", help="Discover or edit AI field selection.")
    schema_cmd.add_argument("--type", choices=RECORD_TYPES, help="Type to edit.")
    schema_cmd.add_argument("--fields", help="Comma-separated field names for --type.")
    schema_cmd.add_argument("--instructions", help="Free-text AI guidance for --type.")

    collections_cmd = sub.add_parser("collections", help="Saved collections.")
    collections_cmd.add_argument("--show", help="Show one collection.")
    collections_cmd.add_argument("--delete", help="Delete one collection.")

    key_cmd = sub.add_parser("set-api-key", help="Store the Gemini API key.")
    key_cmd.add_argument("--verify", action="store_true", help="Check the key against Gemini first.")

    prefs_cmd = sub.add_parser("prefs", help="Show or set preferences.")
    prefs_cmd.add_argument("--detail", choices=DETAIL_LEVELS, help="Detail level.")
    prefs_cmd.add_argument("--template", choices=sorted(LAYOUTS), help="Slide layout.")

    return parser


def print_result(result: OperationResult) -> None:
    style = "green" if result.success else "red"
    console.print(f"[{style}]{'✅' if result.success else '❌'} {result.message}[/{style}]")


def print_alerts(error_handler: ErrorHandler) -> None:
    for alert in error_handler.get_alerts_for_ui():
        console.print(alert)


def _records_table(records) -> Table:
    table = Table(title="🔍 Search Results")
    table.add_column("Number", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Category", style="dim")
    table.add_column("Lifecycle", style="green")
    for record in records:
        table.add_row(record.number, record.name, record.category, record.lifecycle_phase)
    return table


def _selections(orchestrator: SlideOrchestrator, args) -> List[Dict[str, Any]]:
    selections: List[Dict[str, Any]] = []
    if args.collection:
        loaded = orchestrator.load_collection(args.collection)
        if not loaded.success:
            print_result(loaded)
            return []
        selections.extend(loaded.data["items"])
    for number in args.number:
        selections.append({"number": number, "type": args.type})
    return selections


def _with_inferred_types(selections: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    for entry in selections:
        if not entry.get("type"):
            entry["type"] = infer_record_type(entry.get("number", "")).value
    return selections


def show_status(orchestrator: SlideOrchestrator) -> None:
    session = orchestrator.check_session()
    level, template = orchestrator.credentials.get_preferences()

    status_table = Table(title="📊 Arena Slides Status")
    status_table.add_column("Setting", style="cyan")
    status_table.add_column("Value", style="green")
    valid = bool(session.data and session.data.get("valid"))
    status_table.add_row("Session", "✅ Valid" if valid else "⚠️ Not logged in")
    if session.data and session.data.get("email"):
        status_table.add_row("Email", session.data["email"])
        status_table.add_row("Workspace", session.data.get("workspace_id") or "default")
    status_table.add_row("Gemini key", "✅ Set" if orchestrator.credentials.get_api_key() else "⚠️ Missing")
    status_table.add_row("Detail level", level.value)
    status_table.add_row("Slide layout", template)
    status_table.add_row("Saved collections", str(len(orchestrator.history.list_collections())))
    console.print(Panel(status_table, border_style="blue"))


def run(args, orchestrator: SlideOrchestrator) -> int:
    command = args.command

    if command == "login":
        email = args.email or Prompt.ask("Arena email")
        result = orchestrator.login(email, _ask_password() or "", args.workspace)
    elif command == "logout":
        result = orchestrator.logout()
    elif command == "status":
        show_status(orchestrator)
        return 0
    elif command == "search":
        result = orchestrator.search(args.term, args.type, args.full_text)
        if result.success:
            console.print(_records_table(result.data))
            if args.save_as and result.data:
                print_result(orchestrator.save_collection(args.save_as, result.data))
    elif command in ("generate", "collection-slides"):
        selections = _with_inferred_types(_selections(orchestrator, args))
        if not selections:
            console.print("[yellow]Nothing selected: pass --number or --collection.[/yellow]")
            return 1
        include_images = False if args.no_images else None
        if command == "generate":
            result = orchestrator.generate_slides(selections, args.output, args.intent,
                                                  args.detail, include_images)
        else:
            result = orchestrator.generate_collection_slides(selections, args.output, args.intent,
                                                             args.save_as, include_images)
    elif command == "refresh":
        result = orchestrator.refresh_slides(args.path, args.intent, False if args.no_images else None)
    elif command == "schema":
        if args.type and (args.fields is not None or args.instructions is not None):
            fields = [name.strip() for name in (args.fields or "").split(",") if name.strip()]
            if args.fields is None:
                fields = orchestrator.credentials.get_schema_config().for_type(RecordType(args.type)).fields
            result = orchestrator.update_schema_selection(args.type, fields, args.instructions)
        else:
            result = orchestrator.discover_schema()
            if result.success:
                table = Table(title="🗂️ Field Selection")
                table.add_column("Type", style="cyan")
                table.add_column("Selected", style="green")
                table.add_column("Available", style="dim")
                for type_name, available in result.data["available"].items():
                    active = result.data["active"].get(type_name, {}).get("fields", [])
                    table.add_row(type_name, str(len(active)), ", ".join(available))
                console.print(table)
    elif command == "collections":
        if args.delete:
            result = orchestrator.delete_collection(args.delete)
        elif args.show:
            result = orchestrator.load_collection(args.show)
            if result.success:
                console.print(_collection_table(result.data["name"], result.data["items"]))
        else:
            result = orchestrator.list_collections()
            for collection in result.data or []:
                console.print(_collection_table(
                    f"{collection['name']} ({collection['timestamp'][:19]})", collection["items"]
                ))
    elif command == "set-api-key":
        result = orchestrator.set_api_key(Prompt.ask("Gemini API key", password=True), args.verify)
    elif command == "prefs":
        result = orchestrator.update_preferences(args.detail, args.template)
        if result.success:
            console.print(f"Detail level: [cyan]{result.data['detail_level']}[/cyan]  "
                          f"Layout: [cyan]{result.data['slide_template']}[/cyan]")
    else:
        return 2

    print_result(result)
    return 0 if result.success else 1


def _collection_table(title: str, items: List[Dict[str, Any]]) -> Table:
    table = Table(title=f"📚 {title}")
    table.add_column("Number", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Type", style="dim")
    for item in items:
        table.add_row(item.get("number", ""), item.get("name", ""), item.get("type", ""))
    return table


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 2

    config = get_config()
    setup_logging("DEBUG" if args.debug else config.LOG_LEVEL, config.LOG_FILE)
    error_handler = ErrorHandler(console=console, debug_mode=args.debug)
    orchestrator = SlideOrchestrator(config=config, error_handler=error_handler,
                                     password_provider=_ask_password)
    try:
        return run(args, orchestrator)
    finally:
        print_alerts(error_handler)


if __name__ == "__main__":
    sys.exit(main())
