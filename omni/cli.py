"""Omni command line.

Usage:
    omni setup -i <id> -s <secret> -p <password> -u <url> -k <key> -n <username> -w <password>
    omni bitwarden list
    omni bitwarden get -t <item_type> -n <name> [-f <field>]
    omni epicor case complete-task -n <case_number> -a <assign_to> [-c <comment>]
    omni epicor case get-status -n <case_number>
    omni epicor case add-comment -n <case_number> -c <comment>
    omni epicor case last-comment -n <case_number>
    omni epicor case update-quote -n <case_number> -q <quantity>

Every command runs one pipeline: load the saved credentials, authenticate
with the one service it needs, perform one operation, print the result on
stdout. Errors go to stderr with a non-zero exit code.
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, TextIO

from omni import __version__
from omni.config import ConfigStore, Credentials, Settings
from omni.connectors.bitwarden import BitwardenClient, VaultItemType
from omni.connectors.epicor import EpicorClient
from omni.errors import OmniError, VaultFieldNotFoundError
from omni.observability import configure_logging, get_logger, with_correlation

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """What a command prints: ``data`` for JSON output, ``text`` otherwise."""
    data: Any
    text: str
    raw: bool = False  # print ``text`` even in JSON mode


# =============================================================================
# Handlers
# =============================================================================

async def cmd_setup(args: argparse.Namespace, settings: Settings) -> CommandResult:
    credentials = Credentials(
        vault_client_id=args.bw_client_id,
        vault_client_secret=args.bw_client_secret,
        vault_master_password=args.bw_master_password,
        erp_base_url=args.epicor_base_url,
        erp_api_key=args.epicor_api_key,
        erp_username=args.epicor_username,
        erp_password=args.epicor_password,
    )
    ConfigStore(settings.config_path).save(credentials)
    return CommandResult(
        data={"saved": str(settings.config_path)},
        text=f"Configuration saved to {settings.config_path}",
    )


async def _vault_session(client: BitwardenClient, credentials: Credentials):
    return await client.authenticate(
        credentials.vault_client_id,
        credentials.vault_client_secret,
        credentials.vault_master_password,
    )


async def _erp_session(client: EpicorClient, credentials: Credentials):
    return await client.authenticate(
        credentials.erp_base_url,
        credentials.erp_api_key,
        credentials.erp_username,
        credentials.erp_password,
    )


async def cmd_bitwarden_list(args, settings: Settings, credentials: Credentials) -> CommandResult:
    async with BitwardenClient(settings) as client:
        session = await _vault_session(client, credentials)
        items = await client.list_items(session)
    return CommandResult(
        data=[item.to_dict() for item in items],
        text="\n".join(f"{item.item_type.label}\t{item.name}" for item in items),
    )


async def cmd_bitwarden_get(args, settings: Settings, credentials: Credentials) -> CommandResult:
    async with BitwardenClient(settings) as client:
        session = await _vault_session(client, credentials)
        item = await client.get_item(session, args.item_type, args.name)

    if args.field:
        if args.field not in item.fields:
            raise VaultFieldNotFoundError(item.name, args.field)
        return CommandResult(data=item.fields[args.field], text=item.fields[args.field], raw=True)

    lines = [f"{item.name} ({item.item_type.label})"]
    lines.extend(f"{key}: {value}" for key, value in item.fields.items())
    return CommandResult(data=item.to_dict(), text="\n".join(lines))


async def cmd_case_complete_task(args, settings: Settings, credentials: Credentials) -> CommandResult:
    async with EpicorClient(settings) as client:
        session = await _erp_session(client, credentials)
        await client.complete_task(session, args.case_number, args.assign_to, args.comment)
    return CommandResult(
        data={"case_number": args.case_number, "completed": True, "assigned_to": args.assign_to},
        text="Task Completed",
    )


async def cmd_case_get_status(args, settings: Settings, credentials: Credentials) -> CommandResult:
    async with EpicorClient(settings) as client:
        session = await _erp_session(client, credentials)
        status = await client.get_status(session, args.case_number)
    return CommandResult(
        data=status.to_dict(),
        text="\n".join(f"{label}: {value}" for label, value in status.rows()),
    )


async def cmd_case_add_comment(args, settings: Settings, credentials: Credentials) -> CommandResult:
    async with EpicorClient(settings) as client:
        session = await _erp_session(client, credentials)
        await client.add_comment(session, args.case_number, args.comment)
    return CommandResult(
        data={"case_number": args.case_number, "comment_added": True},
        text="Comment Added to Case",
    )


async def cmd_case_last_comment(args, settings: Settings, credentials: Credentials) -> CommandResult:
    async with EpicorClient(settings) as client:
        session = await _erp_session(client, credentials)
        comment = await client.get_last_comment(session, args.case_number)
    return CommandResult(
        data={"case_number": args.case_number, "comment": comment},
        text=comment if comment is not None else "No comments",
    )


async def cmd_case_update_quote(args, settings: Settings, credentials: Credentials) -> CommandResult:
    async with EpicorClient(settings) as client:
        session = await _erp_session(client, credentials)
        await client.update_quote(session, args.case_number, args.quantity)
    return CommandResult(
        data={"case_number": args.case_number, "quantity": args.quantity, "quote_updated": True},
        text="Quote Updated and Attached to Case",
    )


# =============================================================================
# Parser
# =============================================================================

def _item_type(value: str) -> VaultItemType:
    try:
        return VaultItemType.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def _non_empty(value: str) -> str:
    if not value:
        raise argparse.ArgumentTypeError("must not be empty")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="omni",
        description="Scripted access to Bitwarden vault items and Epicor cases",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, help="Secrets file (default: $OMNI_CONFIG or ~/.omni/.env)")
    parser.add_argument("--output", choices=["json", "text"], default="json", help="Result format")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level (stderr)")
    parser.add_argument("--log-json", action="store_true", default=None, help="JSON log lines")
    entities = parser.add_subparsers(dest="entity", required=True)

    # setup
    setup = entities.add_parser(
        "setup",
        help="Save Bitwarden and Epicor credentials",
        description="Writes the secrets file, replacing any previous one.",
    )
    setup.add_argument("-i", "--bw-client-id", required=True, type=_non_empty, help="Bitwarden client ID")
    setup.add_argument("-s", "--bw-client-secret", required=True, type=_non_empty, help="Bitwarden client secret")
    setup.add_argument("-p", "--bw-master-password", required=True, type=_non_empty, help="Bitwarden master password")
    setup.add_argument("-u", "--epicor-base-url", required=True, type=_non_empty, help="Epicor base URL")
    setup.add_argument("-k", "--epicor-api-key", required=True, type=_non_empty, help="Epicor API key")
    setup.add_argument("-n", "--epicor-username", required=True, type=_non_empty, help="Epicor username")
    setup.add_argument("-w", "--epicor-password", required=True, type=_non_empty, help="Epicor password")
    setup.set_defaults(handler=cmd_setup, command="setup", needs_credentials=False)

    # bitwarden
    bitwarden = entities.add_parser("bitwarden", help="Read Bitwarden vault items")
    bitwarden.set_defaults(service="bitwarden")
    bw_commands = bitwarden.add_subparsers(dest="bitwarden_command", required=True)

    bw_list = bw_commands.add_parser("list", help="List vault items")
    bw_list.set_defaults(handler=cmd_bitwarden_list, command="bitwarden.list")

    bw_get = bw_commands.add_parser("get", help="Get a vault item")
    bw_get.add_argument(
        "-t", "--item-type", required=True, type=_item_type,
        help="login | secure-note | card | identity | ssh-key",
    )
    bw_get.add_argument("-n", "--name", required=True, help="Item name (e.g. CAEL10)")
    bw_get.add_argument("-f", "--field", help="Print only this field (e.g. password)")
    bw_get.set_defaults(handler=cmd_bitwarden_get, command="bitwarden.get")

    # epicor
    epicor = entities.add_parser("epicor", help="Work with Epicor ERP")
    epicor.set_defaults(service="epicor")
    epicor_commands = epicor.add_subparsers(dest="epicor_command", required=True)
    case = epicor_commands.add_parser("case", help="Work with Epicor cases")
    case_commands = case.add_subparsers(dest="case_command", required=True)

    complete = case_commands.add_parser("complete-task", help="Complete the current task of a case")
    complete.add_argument("-n", "--case-number", required=True, type=int, help="Epicor case number")
    complete.add_argument("-a", "--assign-to", required=True, type=_non_empty, help="Who the next task is assigned to")
    complete.add_argument("-c", "--comment", help="Optional comment to add to the case")
    complete.set_defaults(handler=cmd_case_complete_task, command="epicor.case.complete-task")

    get_status = case_commands.add_parser("get-status", help="Show the current status of a case")
    get_status.add_argument("-n", "--case-number", required=True, type=int, help="Epicor case number")
    get_status.set_defaults(handler=cmd_case_get_status, command="epicor.case.get-status")

    add_comment = case_commands.add_parser("add-comment", help="Add a comment to a case")
    add_comment.add_argument("-n", "--case-number", required=True, type=int, help="Epicor case number")
    add_comment.add_argument("-c", "--comment", required=True, type=_non_empty, help="Comment text")
    add_comment.set_defaults(handler=cmd_case_add_comment, command="epicor.case.add-comment")

    last_comment = case_commands.add_parser("last-comment", help="Show the most recent comment on a case")
    last_comment.add_argument("-n", "--case-number", required=True, type=int, help="Epicor case number")
    last_comment.set_defaults(handler=cmd_case_last_comment, command="epicor.case.last-comment")

    update_quote = case_commands.add_parser("update-quote", help="Update the quote quantity for a case")
    update_quote.add_argument("-n", "--case-number", required=True, type=int, help="Epicor case number")
    update_quote.add_argument("-q", "--quantity", required=True, type=float, help="New quantity for the case part")
    update_quote.set_defaults(handler=cmd_case_update_quote, command="epicor.case.update-quote")

    return parser


# =============================================================================
# Entry points
# =============================================================================

def _print_result(result: CommandResult, output: str, stdout: TextIO) -> None:
    if result.raw or output == "text":
        if result.text:
            print(result.text, file=stdout)
    else:
        print(json.dumps(result.data, indent=2, default=str), file=stdout)


async def run(
    argv: Optional[List[str]] = None,
    settings: Optional[Settings] = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
) -> int:
    """Parse ``argv``, run one command, and return the exit code.

    ``settings`` defaults to ``Settings.from_env()``; tests pass their own.
    """
    stdout = stdout or sys.stdout
    stderr = stderr or sys.stderr
    args = build_parser().parse_args(argv)

    if settings is None:
        try:
            settings = Settings.from_env()
        except ValueError as e:
            print(f"Error: {e}", file=stderr)
            return 2
    if args.config:
        settings = dataclasses.replace(settings, config_path=args.config.expanduser())

    level_name = args.log_level or settings.log_level
    configure_logging(
        level=getattr(logging, level_name, logging.WARNING),
        json_format=args.log_json if args.log_json is not None else settings.log_json,
        stream=stderr,
    )

    with with_correlation(command=args.command, service=getattr(args, "service", None)):
        try:
            if getattr(args, "needs_credentials", True):
                credentials = ConfigStore(settings.config_path).load()
                result = await args.handler(args, settings, credentials)
            else:
                result = await args.handler(args, settings)
        except OmniError as e:
            logger.debug(f"{type(e).__name__}: {e}")
            print(f"Error: {e}", file=stderr)
            return e.exit_code

    _print_result(result, args.output, stdout)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    return asyncio.run(run(argv))


if __name__ == "__main__":
    sys.exit(main())
