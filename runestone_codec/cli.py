"""Command-line interface for the Runestone codec.

``runestone decode`` inspects a transaction (raw hex, a txid fetched from a
node, or bare output scripts) and prints the Runestone it carries.
``runestone encode`` turns a YAML or JSON description into the ``OP_RETURN``
output script.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

import yaml

from .config import (
    ConfigurationError,
    ProtocolConfig,
    load_protocol_config,
    load_rpc_config,
)
from .rpc_client import NodeRPCClient, RPCError, RPCTransportError, format_rpc_hint
from .runestone import Runestone, RunestoneError
from .script import ScriptError, script_to_asm
from .transaction import Transaction, TransactionDecodeError
from .varint import VarIntError

logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _add_rpc_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--rpc-url", help="Override RPC endpoint URL")
    parser.add_argument("--rpc-host", help="Override RPC host")
    parser.add_argument("--rpc-port", type=int, help="Override RPC port")
    parser.add_argument("--rpc-user", help="Override RPC username")
    parser.add_argument("--rpc-password", help="Override RPC password")
    parser.add_argument("--rpc-wallet", help="Override RPC wallet name")
    https_group = parser.add_mutually_exclusive_group()
    https_group.add_argument(
        "--rpc-use-https",
        dest="rpc_use_https",
        action="store_const",
        const=True,
        help="Force HTTPS when contacting the node",
    )
    https_group.add_argument(
        "--rpc-use-http",
        dest="rpc_use_https",
        action="store_const",
        const=False,
        help="Force HTTP when contacting the node",
    )
    parser.set_defaults(rpc_use_https=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Runestone codec CLI")
    parser.add_argument("--config", help="Path to a YAML config file (default ~/.runestone.yaml)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    decode_parser = subparsers.add_parser(
        "decode", help="Decode the Runestone carried by a transaction"
    )
    source_group = decode_parser.add_mutually_exclusive_group(required=True)
    source_group.add_argument("--tx-hex", help="Raw serialized transaction in hex")
    source_group.add_argument("--txid", help="Transaction id to fetch from the node")
    source_group.add_argument(
        "--script",
        dest="scripts",
        action="append",
        metavar="HEX",
        help="Output script in hex; repeat for several outputs in order",
    )
    decode_parser.add_argument(
        "--integers",
        action="store_true",
        help="Also show the raw payload and its varint integers",
    )
    decode_parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Emit the decoded Runestone as JSON",
    )
    _add_rpc_arguments(decode_parser)

    encode_parser = subparsers.add_parser(
        "encode", help="Encode a YAML/JSON Runestone description into an output script"
    )
    encode_parser.add_argument("path", help="Description file, or '-' to read stdin")
    encode_parser.add_argument(
        "--json",
        dest="as_json",
        action="store_true",
        help="Emit the script as JSON",
    )

    return parser


def _rpc_from_args(args: argparse.Namespace) -> NodeRPCClient:
    config = load_rpc_config(
        config_path=args.config,
        overrides={
            "endpoint": args.rpc_url,
            "host": args.rpc_host,
            "port": args.rpc_port,
            "user": args.rpc_user,
            "password": args.rpc_password,
            "wallet": args.rpc_wallet,
            "use_https": args.rpc_use_https,
        }
    )
    return NodeRPCClient(config)


def _parse_hex(raw: str, what: str) -> bytes:
    try:
        return bytes.fromhex(raw.strip())
    except ValueError as exc:
        raise CLIError(f"{what} is not valid hex: {raw}") from exc


def _transaction_from_args(args: argparse.Namespace) -> Transaction:
    if args.tx_hex:
        return Transaction.from_hex(args.tx_hex)
    if args.scripts:
        return Transaction.from_scripts(_parse_hex(script, "--script") for script in args.scripts)

    rpc = _rpc_from_args(args)
    try:
        return rpc.get_transaction(args.txid)
    except RPCError as exc:
        hint = format_rpc_hint(exc)
        if hint:
            raise CLIError(f"{exc}\nHint: {hint}") from exc
        raise


def _format_runestone(runestone: Runestone) -> list[str]:
    lines = [f"burn: {'yes' if runestone.burn else 'no'}"]
    if runestone.claim is not None:
        lines.append(f"claim: {runestone.claim}")
    if runestone.default_output is not None:
        lines.append(f"default_output: {runestone.default_output}")

    etching = runestone.etching
    if etching is None:
        lines.append("etching: -")
    else:
        lines.append("etching:")
        lines.append(f"  rune: {etching.rune if etching.rune is not None else '-'}")
        lines.append(f"  divisibility: {etching.divisibility}")
        lines.append(f"  spacers: {etching.spacers:#x}")
        lines.append(f"  symbol: {etching.symbol if etching.symbol is not None else '-'}")
        if etching.mint is None:
            lines.append("  mint: -")
        else:
            mint = etching.mint
            lines.append(
                "  mint: "
                f"deadline={mint.deadline if mint.deadline is not None else '-'} "
                f"limit={mint.limit if mint.limit is not None else '-'} "
                f"term={mint.term if mint.term is not None else '-'}"
            )

    lines.append(f"edicts: {len(runestone.edicts)}")
    if runestone.edicts:
        lines.append("        id |               amount | output")
        for edict in runestone.edicts:
            lines.append(f"  {edict.id:>8} | {edict.amount:>20} | {edict.output:>6}")
    return lines


def cmd_decode(args: argparse.Namespace, protocol: ProtocolConfig) -> None:
    transaction = _transaction_from_args(args)
    payload = Runestone.payload(transaction, protocol.magic)
    runestone = Runestone.from_transaction(transaction, protocol)

    integers: list[int] | None = None
    integers_error: str | None = None
    if args.integers and payload is not None:
        try:
            integers = Runestone.integers(payload)
        except VarIntError as exc:
            integers_error = str(exc)

    if args.as_json:
        output: dict[str, Any] = {
            "runestone": runestone.to_dict() if runestone is not None else None
        }
        if args.integers:
            output["payload_hex"] = payload.hex() if payload is not None else None
            output["integers"] = integers
            if integers_error:
                output["integers_error"] = integers_error
        print(json.dumps(output, indent=2, default=str))
        return

    if args.integers and payload is not None:
        print(f"payload: {payload.hex() or '(empty)'}")
        if integers_error:
            print(f"integers: error: {integers_error}")
        else:
            print(f"integers: {' '.join(str(value) for value in integers or [])}")

    if runestone is None:
        print("No runestone found.")
        return
    for line in _format_runestone(runestone):
        print(line)


def _load_description(path: str) -> Any:
    if path == "-":
        text = sys.stdin.read()
    else:
        file_path = Path(path)
        if not file_path.exists():
            raise CLIError(f"Description file does not exist: {file_path}")
        text = file_path.read_text()
    try:
        # JSON is a subset of YAML, so one loader covers both formats.
        return yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise CLIError(f"Failed to parse Runestone description: {exc}") from exc


def cmd_encode(args: argparse.Namespace, protocol: ProtocolConfig) -> None:
    runestone = Runestone.from_dict(_load_description(args.path) or {})
    script = runestone.encipher(protocol)

    if args.as_json:
        print(
            json.dumps(
                {
                    "script_hex": script.hex(),
                    "asm": script_to_asm(script),
                    "payload_hex": runestone.encipher_payload().hex(),
                },
                indent=2,
            )
        )
        return

    print(script.hex())
    print(f"asm: {script_to_asm(script)}")


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        protocol = load_protocol_config(config_path=args.config)
        if args.command == "decode":
            cmd_decode(args, protocol)
        elif args.command == "encode":
            cmd_encode(args, protocol)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (
        CLIError,
        ConfigurationError,
        RPCError,
        RPCTransportError,
        RunestoneError,
        ScriptError,
        TransactionDecodeError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
