#!/usr/bin/env python3
"""
rakepool/cli.py - Command line interface for rakepool

Usage:
    rakepool serve [--host HOST] [--port PORT] [--faucet]
    rakepool keygen
    rakepool sign-auth
    rakepool quote --buy-in N --rake-bps B [--creator-pct C]
    rakepool space --max-players N
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def cmd_serve(args):
    """Start the cashier HTTP server."""
    try:
        import uvicorn
    except ImportError:
        logger.error("The cashier requires uvicorn: pip install uvicorn")
        return 1

    from cashier.server import app
    from rakepool.config import load_config

    cashier_config = load_config().cashier
    if args.host is not None:
        cashier_config.host = args.host
    if args.port is not None:
        cashier_config.port = args.port
    if args.faucet:
        cashier_config.allow_faucet = True

    # Lifespan picks this up and layers env overrides on top
    app.state.cashier_config = cashier_config
    logger.info(f"Starting cashier on {cashier_config.host}:{cashier_config.port}")
    uvicorn.run(app, host=cashier_config.host, port=cashier_config.port, log_level="info")
    return 0


def cmd_keygen(args):
    """Generate a fresh wallet."""
    from rakepool.wallet import generate_wallet

    try:
        address, private_key = generate_wallet()
    except ImportError as e:
        logger.error(str(e))
        return 1

    print(f"Address:     {address}")
    print(f"Private key: {private_key}")
    print()
    print("Add to ~/.rakepool/config.toml:")
    print()
    print("    [wallet]")
    print(f'    address = "{address}"')
    print(f'    private_key = "{private_key}"')
    return 0


def cmd_sign_auth(args):
    """Print signed auth headers for the configured wallet."""
    from rakepool.config import load_config
    from rakepool.wallet import auth_headers, load_wallet

    try:
        account = load_wallet(load_config())
    except ImportError as e:
        logger.error(str(e))
        return 1

    if account is None:
        logger.error("No wallet configured. Run 'rakepool keygen' and add it to config.toml")
        return 1

    for name, value in auth_headers(account).items():
        print(f"{name}: {value}")
    return 0


def cmd_quote(args):
    """Show how one buy-in divides between pot, creator and admin."""
    from rakepool.config import load_config
    from rakepool.errors import EscrowError
    from rakepool.rake import MAX_RAKE_BPS, quote

    creator_pct = args.creator_pct
    if creator_pct is None:
        creator_pct = load_config().admin.creator_share_pct

    if args.rake_bps < 0 or args.rake_bps > MAX_RAKE_BPS:
        logger.error(f"Rake must be between 0 and {MAX_RAKE_BPS} bps")
        return 1
    if creator_pct < 0 or creator_pct > 100:
        logger.error("Creator share must be between 0 and 100")
        return 1

    try:
        breakdown = quote(args.buy_in, args.rake_bps, creator_pct)
    except EscrowError as e:
        logger.error(str(e))
        return 1

    if args.json:
        print(json.dumps(asdict(breakdown), indent=2))
        return 0

    print(f"Buy-in:       {breakdown.buy_in}")
    print(f"Rake:         {breakdown.rake} ({args.rake_bps} bps)")
    print(f"Net to pot:   {breakdown.net}")
    print(f"Creator rake: {breakdown.creator_rake} ({creator_pct}%)")
    print(f"Admin rake:   {breakdown.admin_rake} ({100 - creator_pct}%)")
    return 0


def cmd_space(args):
    """Show the record size for a tournament of a given capacity."""
    from rakepool.records import MAX_PLAYERS, MIN_PLAYERS, AdminConfig, tournament_space

    if args.max_players < MIN_PLAYERS or args.max_players > MAX_PLAYERS:
        logger.error(f"max_players must be between {MIN_PLAYERS} and {MAX_PLAYERS}")
        return 1

    print(f"TournamentEscrow ({args.max_players} seats): {tournament_space(args.max_players)} bytes")
    print(f"AdminConfig: {AdminConfig.SPACE} bytes")
    return 0


def main():
    parser = argparse.ArgumentParser(
        prog="rakepool",
        description="Tournament buy-in escrow with platform rake",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the cashier HTTP server")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: from config)")
    serve_parser.add_argument("--port", "-p", type=int, default=None, help="Port (default: from config)")
    serve_parser.add_argument("--faucet", action="store_true", help="Enable the test-funds faucet")
    serve_parser.set_defaults(func=cmd_serve)

    # keygen command
    keygen_parser = subparsers.add_parser("keygen", help="Generate a new wallet")
    keygen_parser.set_defaults(func=cmd_keygen)

    # sign-auth command
    sign_parser = subparsers.add_parser("sign-auth", help="Print auth headers for the configured wallet")
    sign_parser.set_defaults(func=cmd_sign_auth)

    # quote command
    quote_parser = subparsers.add_parser("quote", help="Break down a buy-in into pot and rake")
    quote_parser.add_argument("--buy-in", type=int, required=True, help="Buy-in in base units")
    quote_parser.add_argument("--rake-bps", type=int, required=True, help="Rake in basis points (max 1000)")
    quote_parser.add_argument("--creator-pct", type=int, default=None, help="Creator share %% (default: from config)")
    quote_parser.add_argument("--json", action="store_true", help="Print JSON instead of text")
    quote_parser.set_defaults(func=cmd_quote)

    # space command
    space_parser = subparsers.add_parser("space", help="Record size for a tournament")
    space_parser.add_argument("--max-players", "-n", type=int, required=True, help="Seat count (2-10)")
    space_parser.set_defaults(func=cmd_space)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
