from __future__ import annotations

import argparse
import base64
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import yaml

from mailtrack.data import crud
from mailtrack.data.db import get_session
from mailtrack.errors import ConfigurationError, PersistenceError
from mailtrack.logging_utils import setup_console_logging, setup_debug_logging
from mailtrack.schemas import AttachmentPayload, SendMessageRequest
from mailtrack.service import MessagingService
from mailtrack.setup import initialize_environment


PROJECT_ROOT = Path(__file__).resolve().parent
_config_override = os.getenv("MAILTRACK_CONFIG")
CONFIG_PATH = Path(_config_override) if _config_override else PROJECT_ROOT / "config.yaml"
DEBUG_LOGGER = logging.getLogger("mailtrack.debug.cli")


def load_configuration():
    with open(CONFIG_PATH, "r", encoding="utf-8") as config_file:
        config_data = yaml.safe_load(config_file)
    return initialize_environment(config_data, base_dir=PROJECT_ROOT)


def _read_attachments(paths: Optional[List[str]]) -> List[AttachmentPayload]:
    attachments: List[AttachmentPayload] = []
    for raw_path in paths or []:
        path = Path(raw_path)
        attachments.append(
            AttachmentPayload(
                name=path.name,
                content=base64.b64encode(path.read_bytes()).decode("ascii"),
            )
        )
    return attachments


def run_send(args: argparse.Namespace) -> int:
    app_config, _ = load_configuration()
    service = MessagingService(app_config.mailtrack)
    request = SendMessageRequest(
        to=args.to or [],
        cc=args.cc or [],
        bcc=args.bcc,
        subject=args.subject,
        body=args.body,
        rich_body=args.html,
        target_account=args.target_account,
        related_record=args.related,
        template=args.template,
        attachments=_read_attachments(args.attach),
    )
    try:
        result = service.send_message(request)
    except ConfigurationError as exc:
        print(f"Invalid message: {exc}", file=sys.stderr)
        return 2
    except PersistenceError as exc:
        print(f"Message sent but tracking failed: {exc}", file=sys.stderr)
        DEBUG_LOGGER.exception("cli.tracking_failed")
        return 3
    finally:
        service.close()

    if not result.success:
        print(f"Delivery failed: {result.detail}", file=sys.stderr)
        return 1
    print(f"Sent ({result.message_id or 'no id'})")
    return 0


def run_list(args: argparse.Namespace) -> int:
    load_configuration()
    session = get_session()
    try:
        rows = crud.list_tracked_messages(session, limit=args.limit)
    finally:
        session.close()
    for row in rows:
        print(f"{row['id']:>6}  {row['message_date']:%Y-%m-%d %H:%M}  {row['to_address'] or '-'}  {row['subject'] or ''}")
    if not rows:
        print("No tracked messages.")
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Send and inspect tracked outbound messages.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    send = subparsers.add_parser("send", help="Send a single message.")
    send.add_argument("--to", action="append", help="Primary recipient (repeatable).")
    send.add_argument("--cc", action="append", help="Copy recipient (repeatable).")
    send.add_argument("--bcc", action="append", help="Blind copy recipient (repeatable).")
    send.add_argument("--subject")
    send.add_argument("--body")
    send.add_argument("--html", help="Rich text body.")
    send.add_argument("--target-account", dest="target_account")
    send.add_argument("--related", help="Related record id.")
    send.add_argument("--template", help="Template id or name.")
    send.add_argument("--attach", action="append", help="File to attach (repeatable).")
    send.set_defaults(handler=run_send)

    listing = subparsers.add_parser("list", help="List recently tracked messages.")
    listing.add_argument("--limit", type=int, default=crud.MAX_TRACKED_PAGE)
    listing.set_defaults(handler=run_list)

    return parser.parse_args(argv)


if __name__ == "__main__":
    args = parse_args()
    setup_console_logging()
    setup_debug_logging(PROJECT_ROOT)
    sys.exit(args.handler(args))
