"""Command line interface for the Chaum-Pedersen authentication service."""

from __future__ import annotations

import argparse
import getpass
import json
import logging
import sys

from cpauth.auth import TransportError, authenticate, register_user
from cpauth.config import Settings
from cpauth.engine import Authenticated, NotRegistered, ProtocolEngine
from cpauth.group import GROUPS, GroupParameters, get_group
from cpauth.store import StorageError, open_directory


def parse_args(argv: list[str], settings: Settings) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--group",
        default=settings.group,
        choices=sorted(GROUPS),
        help=f"Named group shared by prover and verifier (default: {settings.group})",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help="Logging level (default: %(default)s)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the verifier service")
    serve_parser.add_argument("--host", default=settings.host, help="Listening address (default: %(default)s)")
    serve_parser.add_argument("--port", type=int, default=settings.port, help="Listening port (default: %(default)s)")
    serve_parser.add_argument(
        "--store",
        default=settings.store,
        help="Identity directory: memory:, json:PATH, sqlite:PATH or a JSON path (default: %(default)s)",
    )

    for name, help_text in (
        ("register", "Register a username and passphrase"),
        ("login", "Prove knowledge of the passphrase"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--url", default=settings.url, help="Verifier base URL (default: %(default)s)")
        sub.add_argument("--user", help="Username. Prompted for when omitted")

    subparsers.add_parser("parameters", help="Print the selected group parameters")

    return parser.parse_args(argv)


def prompt_credentials(user: str | None) -> tuple[str, str]:
    username = user or input("Username: ").strip()
    passphrase = getpass.getpass("Passphrase: ")
    return username, passphrase


def serve(namespace: argparse.Namespace, group: GroupParameters) -> int:
    import uvicorn

    from cpauth.server import create_app

    try:
        directory = open_directory(namespace.store)
    except StorageError as exc:
        print(f"Cannot open identity directory: {exc}", file=sys.stderr)
        return 1
    try:
        app = create_app(ProtocolEngine(directory, group))
        uvicorn.run(app, host=namespace.host, port=namespace.port, log_level=namespace.log_level.lower())
    finally:
        directory.close()
    return 0


def run_client(namespace: argparse.Namespace, group: GroupParameters) -> int:
    from cpauth.client import HttpTransport

    username, passphrase = prompt_credentials(namespace.user)
    transport = HttpTransport.connect(namespace.url)
    try:
        if namespace.command == "register":
            register_user(transport, username, passphrase, group)
            print(json.dumps({"user": username, "registered": True}, indent=2))
            return 0

        result = authenticate(transport, username, passphrase, group)
    except TransportError as exc:
        print(f"Verifier error: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Invalid credentials: {exc}", file=sys.stderr)
        return 1
    finally:
        transport.close()

    if isinstance(result, NotRegistered):
        print("You are not registered. Please register before logging in.", file=sys.stderr)
        return 1
    if isinstance(result, Authenticated):
        print(json.dumps({"user": username, "success": True, "session_id": result.session_token}, indent=2))
        return 0
    print(json.dumps({"user": username, "success": False}, indent=2))
    return 1


def main(argv: list[str] | None = None) -> int:
    try:
        settings = Settings.from_env()
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    namespace = parse_args(sys.argv[1:] if argv is None else argv, settings)
    level = logging.getLevelName(namespace.log_level.upper())
    if not isinstance(level, int):
        print(f"Invalid log level: {namespace.log_level}", file=sys.stderr)
        return 1
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    group = get_group(namespace.group)

    if namespace.command == "serve":
        return serve(namespace, group)

    if namespace.command in ("register", "login"):
        return run_client(namespace, group)

    if namespace.command == "parameters":
        print(json.dumps(group.to_dict(), indent=2))
        return 0

    raise RuntimeError("Unreachable")


if __name__ == "__main__":
    raise SystemExit(main())
