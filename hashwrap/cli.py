from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

import bittensor as bt

from hashwrap.config import load_hashwrap_env
from hashwrap.core.errors import HashwrapError
from hashwrap.resolver import build_resolver, get_envelope


def add_args(parser: argparse.ArgumentParser) -> None:
    bt.logging.add_args(parser)
    parser.add_argument("txid", help="Confirmed or unconfirmed TXID to build an envelope for.")
    parser.add_argument(
        "--network",
        choices=["mainnet", "testnet"],
        default=None,
        help="Network to resolve on (default: HASHWRAP_NETWORK or mainnet).",
    )
    parser.add_argument(
        "--taal_api_key",
        type=str,
        default=None,
        help="TAAL mAPI key; required on testnet (default: HASHWRAP_TAAL_API_KEY).",
    )
    parser.add_argument(
        "--format",
        choices=["structured", "transport"],
        default="structured",
        help="Print the envelope as JSON (structured) or as BEEF hex (transport).",
    )
    parser.add_argument(
        "--max_workers",
        type=int,
        default=None,
        help="Ancestor transactions resolved concurrently (default: HASHWRAP_MAX_WORKERS or 1).",
    )


def _configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, "logging.trace", False):
        bt.logging.set_trace(True)
    elif getattr(args, "logging.debug", False):
        bt.logging.set_debug(True)


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="hashwrap", description="Build an SPV envelope for a BSV transaction.")
    add_args(parser)
    args = parser.parse_args(argv)
    _configure_logging(args)

    env = load_hashwrap_env()
    try:
        result = get_envelope(
            args.txid,
            network=args.network or env.network,
            credential=args.taal_api_key or env.credential,
            output_format=args.format,
            resolver=build_resolver(env, max_workers=args.max_workers),
        )
    except HashwrapError as exc:
        bt.logging.error(f"Could not build envelope for {args.txid}: {exc}")
        return 1

    if isinstance(result, bytes):
        sys.stdout.write(result.hex() + "\n")
    else:
        sys.stdout.write(json.dumps(result.to_json_dict(), indent=2) + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
