"""Command-line interface for the email client core.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

import structlog

from email_client_core import __version__
from email_client_core.backend import HttpMailBackend
from email_client_core.config import Settings, get_settings
from email_client_core.contacts import ContactDirectory
from email_client_core.exceptions import EmailClientError
from email_client_core.models import ComposeFields, Message, SenderIdentity
from email_client_core.scheduler import ManualSignals, PollingScheduler, is_hot_folder, is_sent_folder
from email_client_core.session import MailSession
from email_client_core.storage import SqliteKeyValueStore

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="email-client", description="Email client core")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Contact commands
    contacts_parser = subparsers.add_parser("contacts", help="Inspect the learned address book")
    contacts_sub = contacts_parser.add_subparsers(dest="contacts_command", required=True)

    list_parser = contacts_sub.add_parser("list", help="Print ranked contact suggestions")
    list_parser.add_argument("--user", default="guest", help="Owner of the address book")
    list_parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Path to the SQLite key/value store (default: settings kv_db_path)",
    )
    list_parser.add_argument("--limit", type=int, default=25, help="Max contacts to print")

    # Folder polling
    watch_parser = subparsers.add_parser("watch", help="Poll a folder and print its merged view")
    watch_parser.add_argument("folder_id", help="Folder ID to poll")
    watch_parser.add_argument("--name", default="", help="Folder name, used to pick the polling interval")
    watch_parser.add_argument("--iterations", type=int, default=3, help="Number of refreshes before exiting")
    watch_parser.add_argument("--user", default="guest", help="Owner of the address book")
    watch_parser.add_argument("--db", type=Path, default=None, help="Path to the SQLite key/value store")

    # Sending
    send_parser = subparsers.add_parser("send", help="Send a message and follow its sent placeholder")
    send_parser.add_argument("--account", required=True, help="Sending account ID")
    send_parser.add_argument("--from-addr", default=None, help="Address shown on the sent placeholder")
    send_parser.add_argument("--to", required=True, help="Recipients, comma separated")
    send_parser.add_argument("--cc", default="", help="Cc recipients")
    send_parser.add_argument("--bcc", default="", help="Bcc recipients")
    send_parser.add_argument("--subject", default="", help="Subject line")
    send_parser.add_argument("--body", default="", help="Plain-text body")
    send_parser.add_argument(
        "--sent-folder",
        default=None,
        help="Sent folder ID (default: looked up among the account's folders)",
    )
    send_parser.add_argument("--user", default="guest", help="Owner of the address book")
    send_parser.add_argument("--db", type=Path, default=None, help="Path to the SQLite key/value store")

    return parser


def _open_store(settings: Settings, db: Path | None) -> SqliteKeyValueStore:
    store = SqliteKeyValueStore(db or settings.kv_db_path)
    store.initialize()
    return store


def _format_message(message: Message) -> str:
    marker = "PENDING" if message.is_local_pending else ("READ" if message.is_read else "UNREAD")
    sender = message.from_addr or message.from_name or "(unknown sender)"
    return f"{marker}\t{message.date or '(no date)'}\t{sender}\t{message.subject}"


async def _cmd_contacts_list(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = _open_store(settings, args.db)
    directory = ContactDirectory(store, f"{settings.contacts_key_prefix}{args.user}")
    await directory.load()

    ranked = directory.ranked()
    for contact in ranked[: args.limit]:
        print(contact.display_label)
    if not ranked:
        print("No contacts learned yet.")
    return 0


async def _cmd_watch(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = _open_store(settings, args.db)
    signals = ManualSignals(visible=True)
    done = asyncio.Event()
    remaining = max(1, args.iterations)

    async with HttpMailBackend(settings=settings) as backend:
        session = MailSession(backend, store, signals, settings=settings, user_id=args.user)
        await session.open()

        async def refresh_and_print(folder_id: str) -> None:
            nonlocal remaining
            batch = await session.refresh_folder(folder_id)
            if batch is None:
                print(f"Refresh of {folder_id} failed; keeping previous view")
            else:
                print(f"--- {folder_id}: {len(batch)} messages")
                for message in session.merged_view(folder_id):
                    print(_format_message(message))
            remaining -= 1
            if remaining <= 0:
                done.set()

        scheduler = PollingScheduler(
            args.folder_id,
            refresh_and_print,
            signals,
            hot=is_hot_folder(args.name or args.folder_id),
            settings=settings,
        )
        scheduler.start()
        try:
            await done.wait()
        finally:
            scheduler.cancel()
            await scheduler.wait_closed()
            await session.close()
    return 0


async def _cmd_send(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = _open_store(settings, args.db)
    compose = ComposeFields(
        from_account_id=args.account,
        to=args.to,
        cc=args.cc,
        bcc=args.bcc,
        subject=args.subject,
        body_text=args.body,
    )
    sender = SenderIdentity(
        display_name=args.from_addr or "Me",
        email_address=args.from_addr or "me@example.com",
    )

    async with HttpMailBackend(settings=settings) as backend:
        session = MailSession(
            backend, store, ManualSignals(), settings=settings, user_id=args.user, sender=sender
        )
        await session.open()

        sent_folder_id = args.sent_folder
        if sent_folder_id is None:
            folders = await backend.list_folders(args.account)
            sent = next((f for f in folders if is_sent_folder(f.name, f.display_name)), None)
            sent_folder_id = sent.id if sent is not None else None

        try:
            result = await session.send(compose, sent_folder_id=sent_folder_id)
        except EmailClientError as exc:
            print(f"Send failed: {exc}", file=sys.stderr)
            await session.close()
            return 1

        print(f"Sent {result.message_id} ({len(result.message_ids) or 1} part(s))")
        if sent_folder_id is None:
            print("No sent folder found; nothing to follow.")
        else:
            for message in session.registry.pending(sent_folder_id):
                print(_format_message(message))
            await session.drain()
            still_pending = session.registry.pending(sent_folder_id)
            print(f"{len(still_pending)} placeholder(s) still waiting for the server copy")
        await session.close()
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the email client CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()

    # Configure logging
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
    )

    logger.info("email_client_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    if parsed.command == "contacts":
        if parsed.contacts_command == "list":
            return asyncio.run(_cmd_contacts_list(parsed))
    if parsed.command == "watch":
        return asyncio.run(_cmd_watch(parsed))
    if parsed.command == "send":
        return asyncio.run(_cmd_send(parsed))

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
