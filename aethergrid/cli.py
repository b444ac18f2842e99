"""
AetherGrid CLI - Command-line interface for the session protocol.

Usage:
    aethergrid commit X Y --nullifier N        Compute a treasure commitment
    aethergrid nullifier SESSION P1 P2         Derive a session nullifier
    aethergrid inspect ARTIFACT                Preview a Step A artifact
    aethergrid serve [--host H] [--port P]     Run a local ledger node
"""

import argparse
import json
import sys

from .logs import configure_logging


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="AetherGrid - two-party commit-and-reveal sessions",
        prog="aethergrid",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Commit command
    commit_parser = subparsers.add_parser("commit", help="Compute a treasure commitment")
    commit_parser.add_argument("x", type=int, help="Treasure x coordinate")
    commit_parser.add_argument("y", type=int, help="Treasure y coordinate")
    commit_parser.add_argument("--nullifier", "-n", type=int, required=True, help="Session nullifier")

    # Nullifier command
    nullifier_parser = subparsers.add_parser("nullifier", help="Derive a session nullifier")
    nullifier_parser.add_argument("session_id", type=int, help="u32 session id")
    nullifier_parser.add_argument("player1", help="Player 1 address")
    nullifier_parser.add_argument("player2", help="Player 2 address")
    nullifier_parser.add_argument(
        "--scheme",
        choices=["session_binding", "session_id"],
        default=None,
        help="Nullifier derivation scheme (default: AETHERGRID_NULLIFIER_SCHEME or session_binding)",
    )

    # Inspect command
    inspect_parser = subparsers.add_parser("inspect", help="Preview a Step A artifact")
    inspect_parser.add_argument("artifact", help="Artifact string, or @file to read one")
    inspect_parser.add_argument("--passphrase", help="Network passphrase to check the signature against")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run a local ledger node")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)

    configure_logging()

    if args.command == "commit":
        cmd_commit(args)
    elif args.command == "nullifier":
        cmd_nullifier(args)
    elif args.command == "inspect":
        cmd_inspect(args)
    elif args.command == "serve":
        cmd_serve(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_commit(args):
    """Compute a treasure commitment."""
    from .commitment import commit
    from .errors import FieldElementError

    try:
        commitment = commit(args.x, args.y, args.nullifier)
    except FieldElementError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(commitment.hex())


def cmd_nullifier(args):
    """Derive a session nullifier."""
    from .commitment import NullifierScheme, nullifier_for
    from .config import ProtocolConfig

    if args.scheme is None:
        scheme = ProtocolConfig.from_env().nullifier_scheme
    else:
        scheme = NullifierScheme(args.scheme)

    try:
        value = nullifier_for(scheme, args.session_id, args.player1, args.player2)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(value)


def cmd_inspect(args):
    """Preview a Step A artifact."""
    from .errors import ArtifactError
    from .session.artifact import inspect_artifact

    artifact = args.artifact
    if artifact.startswith("@"):
        try:
            with open(artifact[1:], "r", encoding="utf-8") as f:
                artifact = f.read().strip()
        except FileNotFoundError:
            print(f"Error: File not found: {artifact[1:]}")
            sys.exit(1)

    try:
        preview = inspect_artifact(artifact, network_passphrase=args.passphrase)
    except ArtifactError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print(json.dumps(preview, indent=2))


def cmd_serve(args):
    """Run a local ledger node."""
    import uvicorn

    from .api import create_app

    print(f"Starting ledger node on http://{args.host}:{args.port}")
    uvicorn.run(create_app(), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
