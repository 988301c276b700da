"""
Command-line interface for the Party Coin Server.

Provides CLI commands for server management:
- init-db: Initialize the database schema
- run: Start the API server
- verify-ledger: Compare stored balances with the event log
- balance: Ask a running server for a player's balance
- show-config: Print the resolved configuration

Usage:
    coin-server init-db
    coin-server run [--port PORT] [--host HOST]
    coin-server verify-ledger [--phone PHONE]
    coin-server balance --phone PHONE [--server-url URL]
    coin-server show-config

Environment Variables:
    COIN_DB_PATH: SQLite database path (default: data/coins.db)
    COIN_HOST: Host to bind API server (default: 0.0.0.0)
    COIN_PORT: Port for API server (default: 5000)
    COIN_SERVER_URL: Server URL used by ``balance`` (default: http://localhost:5000)
"""

import argparse
import sys


def cmd_init_db(args: argparse.Namespace) -> int:
    """
    Initialize the database schema.

    Returns:
        0 on success, 1 on error
    """
    from coin_server.db.errors import DatabaseError
    from coin_server.db.store import LedgerStore

    store = LedgerStore.from_config()
    try:
        store.open()
    except DatabaseError as e:
        print(f"Error initializing database: {e}", file=sys.stderr)
        return 1
    store.close()
    print(f"Database initialized at {store.db_path}.")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """
    Run the API server.

    Configuration Priority:
        1. CLI arguments (--port, --host)
        2. Environment variables (COIN_PORT/PORT, COIN_HOST)
        3. config/server.ini, then built-in defaults (5000, 0.0.0.0)

    Returns:
        0 on clean shutdown (Ctrl+C), 1 on error during startup
    """
    from coin_server.api.server import start_server

    try:
        start_server(host=getattr(args, "host", None), port=getattr(args, "port", None))
        return 0
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0
    except OSError as e:
        print(f"Error starting server: {e}", file=sys.stderr)
        return 1


def cmd_verify_ledger(args: argparse.Namespace) -> int:
    """
    Compare stored balances with the sum of each player's events.

    Returns:
        0 when every checked ledger matches, 1 on any mismatch or error
    """
    from coin_server.db.errors import DatabaseError
    from coin_server.db.store import LedgerStore
    from coin_server.ledger import InvalidInputError, verify_all_ledgers, verify_player_ledger

    store = LedgerStore.from_config()
    try:
        with store:
            if args.phone:
                results = [verify_player_ledger(store, args.phone)]
            else:
                results = verify_all_ledgers(store)
    except (DatabaseError, InvalidInputError) as e:
        print(f"Error verifying ledger: {e}", file=sys.stderr)
        return 1

    mismatches = [result for result in results if result.status == "mismatch"]
    for result in results:
        if result.status == "mismatch":
            print(f"MISMATCH {result.phone}: {result.error_detail}")
        elif result.status == "empty":
            print(f"EMPTY    {result.phone}: no player record")
        else:
            print(
                f"OK       {result.phone}: {result.balance} coins over {result.event_count} events"
            )

    if mismatches:
        print(f"{len(mismatches)} ledger(s) out of balance.", file=sys.stderr)
        return 1
    if not args.phone:
        print("All ledgers balanced.")
    return 0


def cmd_balance(args: argparse.Namespace) -> int:
    """
    Query a running server for a player's balance.

    Returns:
        0 on success, 1 when the request fails
    """
    from coin_server.client.api_client import CoinAPIClient

    client = CoinAPIClient(server_url=args.server_url)
    response = client.get_coins(args.phone)
    if not response["success"]:
        print(f"Error: {response['error']}", file=sys.stderr)
        return 1
    print(response["data"]["coins"])
    return 0


def cmd_show_config(args: argparse.Namespace) -> int:
    """Print the resolved configuration (the shared secret is never shown)."""
    from coin_server.config import print_config_summary

    print_config_summary()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="coin-server",
        description="Party Coin Server - per-player coin ledger for party games",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # init-db command
    init_parser = subparsers.add_parser(
        "init-db",
        help="Initialize the database schema",
        description="Create the SQLite database, tables, and invariant triggers.",
    )
    init_parser.set_defaults(func=cmd_init_db)

    # run command
    run_parser = subparsers.add_parser(
        "run",
        help="Run the API server",
        description="Start the FastAPI server under uvicorn.",
    )
    run_parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="API server port (default: 5000, or COIN_PORT env var)",
    )
    run_parser.add_argument(
        "--host",
        type=str,
        help="Host to bind the server to (default: 0.0.0.0, or COIN_HOST env var)",
    )
    run_parser.set_defaults(func=cmd_run)

    # verify-ledger command
    verify_parser = subparsers.add_parser(
        "verify-ledger",
        help="Check balances against the event log",
        description="Exit status 1 when any balance differs from its event total.",
    )
    verify_parser.add_argument("--phone", type=str, help="Check a single player only")
    verify_parser.set_defaults(func=cmd_verify_ledger)

    # balance command
    balance_parser = subparsers.add_parser(
        "balance",
        help="Query a running server for a balance",
    )
    balance_parser.add_argument("--phone", type=str, required=True, help="Player phone number")
    balance_parser.add_argument(
        "--server-url",
        type=str,
        help="Server URL (default: COIN_SERVER_URL env var or http://localhost:5000)",
    )
    balance_parser.set_defaults(func=cmd_balance)

    # show-config command
    config_parser = subparsers.add_parser("show-config", help="Print resolved configuration")
    config_parser.set_defaults(func=cmd_show_config)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
