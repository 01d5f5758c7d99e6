"""Command line interface for the energy CRM."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from .config import CRMSettings
from .engine import CRMEngine
from .errors import CommandOutcome, CRMError, ValidationError
from .io import export_filename
from .models import AGENT, CSV_COLUMNS, ROLES, STAGES, Record, User
from .normalize import normalize_phone
from .query import ALL, DESCENDING, SORT_KEYS, SORT_NEXT_CALL, UNASSIGNED, ViewState, reminder_status
from .records import SNOOZE_HOUR

LOGGER = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NEEDS_CONFIRMATION = 3

_FIELD_ATTRIBUTES = dict(CSV_COLUMNS)


def build_parser(prog: Optional[str] = None) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, description="Track energy supply leads through the sales pipeline")
    parser.add_argument("--config", help="Path to a configuration file (YAML or JSON)")
    parser.add_argument("--store", help="Path to the JSON data file (overrides the configuration)")
    parser.add_argument("--log-level", default=None, help="Logging level (e.g. DEBUG, INFO, WARNING)")
    parser.add_argument("--yes", action="store_true", help="Confirm destructive or ambiguous operations")
    commands = parser.add_subparsers(dest="command", required=True)

    setup = commands.add_parser("setup", help="Create the first administrator")
    setup.add_argument("name")
    setup.add_argument("email")
    setup.add_argument("--pin", default="")

    login = commands.add_parser("login", help="Sign in with email and PIN")
    login.add_argument("email")
    login.add_argument("pin")
    commands.add_parser("logout", help="Clear the current session")
    commands.add_parser("whoami", help="Show the signed in user")

    listing = commands.add_parser("list", help="Show the visible records")
    _add_view_arguments(listing)
    commands.add_parser("reminders", help="Show due and overdue call reminders")

    add = commands.add_parser("add", help="Create a record")
    add.add_argument("--set", dest="fields", action="append", default=[], metavar="FIELD=VALUE")
    add.add_argument("--note", default="")

    edit = commands.add_parser("edit", help="Update a record")
    edit.add_argument("record_id")
    edit.add_argument("--set", dest="fields", action="append", default=[], metavar="FIELD=VALUE")
    edit.add_argument("--note", default="")

    promote = commands.add_parser("promote", help="Move a record to another stage")
    promote.add_argument("record_id")
    promote.add_argument("stage", choices=STAGES)

    snooze = commands.add_parser("snooze", help="Push a record's next call back")
    snooze.add_argument("record_id")
    snooze.add_argument("--minutes", type=int, default=SNOOZE_HOUR)

    delete = commands.add_parser("delete", help="Move a record to the bin")
    delete.add_argument("record_id")
    delete.add_argument("--reason", default=None)
    delete.add_argument("--no-dnc", action="store_true", help="Do not add the phone to the DNC list")

    commands.add_parser("trash", help="List the bin")
    restore = commands.add_parser("restore", help="Restore a record from the bin")
    restore.add_argument("record_id")
    purge = commands.add_parser("purge", help="Permanently delete a record from the bin")
    purge.add_argument("record_id")

    importer = commands.add_parser("import", help="Import records from CSV or Excel")
    importer.add_argument("path")
    importer.add_argument("--owner-email", default=None, help="Assign imported records to this user")

    exporter = commands.add_parser("export", help="Export all records")
    exporter.add_argument("path", nargs="?")
    template = commands.add_parser("template", help="Write an empty CSV template")
    template.add_argument("path", nargs="?")

    reassign = commands.add_parser("reassign", help="Assign every visible record to a user")
    reassign.add_argument("--to", dest="target", required=True, help="Target user email, or 'none' to unassign")
    _add_view_arguments(reassign)

    users = commands.add_parser("users", help="Manage users")
    user_commands = users.add_subparsers(dest="user_command", required=True)
    user_commands.add_parser("list")
    user_add = user_commands.add_parser("add")
    user_add.add_argument("name")
    user_add.add_argument("email")
    user_add.add_argument("--role", choices=ROLES, default=AGENT)
    user_add.add_argument("--pin", default="")
    user_edit = user_commands.add_parser("edit")
    user_edit.add_argument("email")
    user_edit.add_argument("--name")
    user_edit.add_argument("--new-email")
    user_edit.add_argument("--role", choices=ROLES)
    user_edit.add_argument("--pin", default="")
    user_deactivate = user_commands.add_parser("deactivate")
    user_deactivate.add_argument("email")
    user_deactivate.add_argument("--reassign-to", default=None, help="Email of the user taking over their records")

    dnc = commands.add_parser("dnc", help="Manage the Do-Not-Call list")
    dnc_commands = dnc.add_subparsers(dest="dnc_command", required=True)
    dnc_commands.add_parser("list")
    dnc_add = dnc_commands.add_parser("add")
    dnc_add.add_argument("phone")
    return parser


def _add_view_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--search", default="")
    parser.add_argument("--stage", default=ALL, choices=(ALL, *STAGES))
    parser.add_argument("--owner", default=ALL, help="Owner email, 'unassigned', or 'All' (admins only)")
    parser.add_argument("--sort", default=SORT_NEXT_CALL, choices=SORT_KEYS)
    parser.add_argument("--desc", action="store_true", help="Sort descending")
    parser.add_argument("--show-dnc", action="store_true", help="Include suppressed numbers")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _view_from_args(engine: CRMEngine, args: argparse.Namespace) -> ViewState:
    view = ViewState(query=args.search, stage_filter=args.stage, sort_key=args.sort, hide_dnc=not args.show_dnc)
    if args.desc:
        view.sort_dir = DESCENDING
    if args.owner not in (ALL, UNASSIGNED):
        owner = engine.users.find_active_by_email(args.owner)
        if owner is None:
            raise ValidationError(f"No active user with email '{args.owner}'")
        view.owner_filter = owner.id
    else:
        view.owner_filter = args.owner
    return view


def _parse_fields(pairs: Iterable[str]) -> Dict[str, str]:
    values: Dict[str, str] = {}
    for pair in pairs:
        key, separator, value = pair.partition("=")
        key = key.strip()
        if not separator or key not in _FIELD_ATTRIBUTES:
            raise ValidationError(f"Expected FIELD=VALUE with FIELD one of: {', '.join(_FIELD_ATTRIBUTES)}")
        values[_FIELD_ATTRIBUTES[key]] = value
    return values


def _require_user(engine: CRMEngine) -> User:
    user = engine.current_user
    if user is None:
        raise CRMError("Not signed in. Run 'setup' or 'login' first.")
    return user


def _report(outcome: CommandOutcome) -> int:
    if outcome.requires_confirmation:
        print(outcome.message)
        print("Re-run with --yes to confirm.")
        return EXIT_NEEDS_CONFIRMATION
    print(outcome.message)
    return EXIT_OK


def _format_record(record: Record, engine: CRMEngine, duplicates: frozenset[str]) -> str:
    owner = engine.users.find(record.owner_id)
    phone = record.phone
    if normalize_phone(phone) in duplicates:
        phone = f"{phone} (duplicate)"
    call = " ".join(filter(None, [record.next_call_date, record.next_call_time])) or "-"
    return "\t".join(
        [
            record.id,
            record.company or "(no company)",
            record.contact or "-",
            phone or "-",
            record.stage,
            record.ced or "-",
            call,
            owner.name if owner else "(unassigned)",
        ]
    )


def _print_records(records: List[Record], engine: CRMEngine) -> None:
    duplicates = engine.duplicates()
    for record in records:
        print(_format_record(record, engine, duplicates))
    print(f"{len(records)} record(s)")


def _user_by_email(engine: CRMEngine, email: str) -> User:
    user = next((candidate for candidate in engine.users.users if candidate.email == email), None)
    if user is None:
        raise ValidationError(f"No user with email '{email}'")
    return user


# ----------------------------------------------------------------------
# Command dispatch
# ----------------------------------------------------------------------
def run_command(engine: CRMEngine, args: argparse.Namespace) -> int:
    command = args.command

    if command == "setup":
        admin = engine.create_first_admin(args.name, args.email, args.pin)
        print(f"Created administrator {admin.name} <{admin.email}> and signed in")
        return EXIT_OK
    if command == "login":
        user = engine.login(args.email, args.pin)
        print(f"Signed in as {user.name} ({user.role})")
        return EXIT_OK
    if command == "logout":
        engine.logout()
        print("Signed out")
        return EXIT_OK

    actor = _require_user(engine)

    if command == "whoami":
        print(f"{actor.name} <{actor.email}> {actor.role.upper()}")
        return EXIT_OK
    if command == "list":
        _print_records(engine.visible(actor, _view_from_args(engine, args)), engine)
        return EXIT_OK
    if command == "reminders":
        reminders = engine.reminders(actor)
        if not reminders:
            print("No reminders due.")
        for record in reminders:
            status = reminder_status(record).upper()
            print(f"{status}\t{record.display_name()}\t{record.next_call_date} {record.next_call_time}\t{record.next_call_notes}")
        return EXIT_OK
    if command == "add":
        record = Record(owner_id=actor.id, **_parse_fields(args.fields))
        return _report(engine.save_record(actor, record, note=args.note, confirm=args.yes))
    if command == "edit":
        record = engine.get_record(actor, args.record_id).copy(**_parse_fields(args.fields))
        return _report(engine.save_record(actor, record, note=args.note, confirm=args.yes))
    if command == "promote":
        return _report(engine.promote_stage(actor, args.record_id, args.stage, confirm=args.yes))
    if command == "snooze":
        record = engine.snooze_record(actor, args.record_id, args.minutes)
        print(f"Next call {record.next_call_date} {record.next_call_time}")
        return EXIT_OK
    if command == "delete":
        outcome = engine.delete_record(
            actor, args.record_id, reason=args.reason, add_to_dnc=not args.no_dnc, confirm=args.yes
        )
        return _report(outcome)
    if command == "trash":
        for item in engine.trash_items(actor):
            print(f"{item.id}\t{item.record.display_name()}\t{item.deleted_at}\t{item.delete_reason}")
        return EXIT_OK
    if command == "restore":
        record = engine.restore_record(actor, args.record_id)
        print(f"Restored {record.display_name()}")
        return EXIT_OK
    if command == "purge":
        return _report(engine.purge_record(actor, args.record_id, confirm=args.yes))
    if command == "import":
        owner_id = _user_by_email(engine, args.owner_email).id if args.owner_email else None
        summary = engine.import_file(actor, args.path, owner_id)
        print(summary.message)
        return EXIT_OK
    if command == "export":
        from .ingestion import export_records

        destination = Path(args.path or export_filename(engine.settings.export_prefix))
        export_records(engine.export_records(actor), destination)
        print(f"Exported records to {destination.resolve()}")
        return EXIT_OK
    if command == "template":
        destination = Path(args.path or engine.settings.template_filename)
        destination.write_text(engine.csv_template(), encoding="utf-8")
        print(f"Wrote template to {destination.resolve()}")
        return EXIT_OK
    if command == "reassign":
        owner_id = None if args.target.lower() == "none" else _user_by_email(engine, args.target).id
        return _report(engine.bulk_reassign(actor, owner_id, _view_from_args(engine, args), confirm=args.yes))
    if command == "users":
        return _run_user_command(engine, actor, args)
    if command == "dnc":
        if args.dnc_command == "add":
            added = engine.add_to_dnc(actor, args.phone)
            print("Added to DNC list" if added else "Already on the DNC list")
            return EXIT_OK
        for number in engine.dnc_numbers(actor):
            print(number)
        return EXIT_OK

    raise CRMError(f"Unknown command '{command}'")  # pragma: no cover - argparse restricts choices


def _run_user_command(engine: CRMEngine, actor: User, args: argparse.Namespace) -> int:
    if args.user_command == "list":
        for user in engine.list_users(actor):
            state = "active" if user.active else "inactive"
            print(f"{user.name}\t{user.email}\t{user.role}\t{state}")
        return EXIT_OK
    if args.user_command == "add":
        user = engine.add_user(actor, args.name, args.email, role=args.role, pin=args.pin)
        print(f"Added {user.role} {user.email}")
        return EXIT_OK
    if args.user_command == "edit":
        user = _user_by_email(engine, args.email)
        updated = engine.edit_user(
            actor,
            user.id,
            name=args.name or user.name,
            email=args.new_email or user.email,
            role=args.role or user.role,
            pin=args.pin,
        )
        print(f"Updated {updated.email}")
        return EXIT_OK
    user = _user_by_email(engine, args.email)
    return _report(engine.deactivate_user(actor, user.id, reassign_to_email=args.reassign_to, confirm=args.yes))


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        settings = CRMSettings.load(args.config)
        logging.basicConfig(level=getattr(logging, (args.log_level or settings.log_level).upper(), logging.INFO))
        engine = CRMEngine.open(args.store or settings.store_path, settings=settings)
        return run_command(engine, args)
    except CRMError as exc:
        LOGGER.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_ERROR
    except FileNotFoundError as exc:
        print(f"Error: file not found: {exc.filename or exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
