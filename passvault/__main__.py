"""
PassVault command line.

Usage:
    passvault init                           # create a vault, prompts for a master secret
    passvault add NAME USERNAME [PASSWORD]   # prompts for the password when omitted
    passvault get NAME
    passvault list

Secrets are only ever read with getpass; the vault core never prompts.
"""
import sys
import logging
import argparse
from getpass import getpass
from typing import Optional

from pydantic import ValidationError

from .version import __version__
from .data import CredentialRecord
from .exceptions import VaultError
from .vault import VaultConfig, VaultStore

logger = logging.getLogger("passvault.cli")


def _prompt_new_secret() -> str:
    secret = getpass("Set master password: ")
    if not secret:
        raise ValueError("Master password cannot be empty")
    if getpass("Repeat master password: ") != secret:
        raise ValueError("Master passwords do not match")
    return secret


def cmd_init(store: VaultStore, args: argparse.Namespace) -> int:
    store.init(_prompt_new_secret())
    print(f"Password store initialized: {store.path}")
    return 0


def cmd_add(store: VaultStore, args: argparse.Namespace) -> int:
    secret = getpass("Master password: ")
    password = args.password
    if password is None:
        password = getpass(f"Password for {args.name}: ")
    record = CredentialRecord(name=args.name, username=args.username, secret=password)
    with store.transaction(secret) as handle:
        handle.add(record)
    print(f"Added {args.name}")
    return 0


def cmd_get(store: VaultStore, args: argparse.Namespace) -> int:
    handle = store.open(getpass("Master password: "))
    record = handle.find(args.name)
    print(f"Username: {record.username}")
    print(f"Password: {record.secret}")
    return 0


def cmd_list(store: VaultStore, args: argparse.Namespace) -> int:
    handle = store.open(getpass("Master password: "))
    records = handle.list()
    if not records:
        print("No entries")
    for record in records:
        print(f"{record.name}\t{record.username}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="passvault",
        description="Encrypted single-user password store",
    )
    parser.add_argument(
        "-s", "--store",
        default=None,
        help="Path to password store (default: $VAULT_PATH or passwords.enc)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"passvault {__version__}"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Initialize password store").set_defaults(func=cmd_init)

    add = sub.add_parser("add", help="Add a new password entry")
    add.add_argument("name")
    add.add_argument("username")
    add.add_argument("password", nargs="?", default=None)
    add.set_defaults(func=cmd_add)

    get = sub.add_parser("get", help="Get a password entry")
    get.add_argument("name")
    get.set_defaults(func=cmd_get)

    sub.add_parser("list", help="List all entries").set_defaults(func=cmd_list)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        store = VaultStore(config=VaultConfig.from_env(path=args.store))
        return args.func(store, args)
    except VaultError as err:
        logger.debug("Command %s failed: %s", args.command, type(err).__name__)
        print(f"Error: {err}", file=sys.stderr)
        return 1
    except ValidationError as err:
        # str(err) echoes input values, which may be a password
        fields = ", ".join(str(e["loc"][0]) for e in err.errors() if e["loc"])
        print(f"Error: invalid value for {fields}", file=sys.stderr)
        return 1
    except ValueError as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
