#!/usr/bin/env python3
"""
TimeLock Command Line Interface

Usage:
    timelock keygen [--output <file>]
    timelock event-keygen --output <file>
    timelock domain-separator --contract <address>
    timelock sign-deposit --key <hex> --contract <address> --institution <name> ...
    timelock sign-release --key <hex> --contract <address> --account <address> --lock-index <n>
    timelock verify-events --events <file> [--public-key <b64>]
    timelock demo
"""

import argparse
import json
import sys
from typing import List, Optional

from eth_account import Account

from timelock.service import CHAIN_ID, DOMAIN_NAME, DOMAIN_VERSION


def load_json(path: str):
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def save_json(data, path: str):
    """Save JSON to file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)


def _emit(data, output: Optional[str]) -> None:
    if output:
        save_json(data, output)
        print(f"Saved to: {output}")
    else:
        print(json.dumps(data, indent=2))


def _domain(args):
    from timelock.typed_data import TypedDataDomain

    return TypedDataDomain(
        name=args.name,
        version=args.version,
        chain_id=args.chain_id,
        verifying_contract=args.contract,
    )


def _deadline(args) -> int:
    from timelock.util import now_epoch

    if args.deadline is not None:
        return args.deadline
    return now_epoch() + args.ttl


def cmd_keygen(args):
    """Generate a secp256k1 signing account for certifiers and release authorizers."""
    from timelock.util import to_hex

    acct = Account.create()
    _emit({"address": acct.address, "private_key": to_hex(acct.key)}, args.output)
    return 0


def cmd_event_keygen(args):
    """Generate an Ed25519 key for signing event log entries."""
    from timelock.keys import EventSigner

    signer = EventSigner.generate(args.kid)
    signer.save(args.output)
    print(json.dumps({"kid": signer.kid, "public_key_b64": signer.public_key_b64}, indent=2))
    return 0


def cmd_domain_separator(args):
    from timelock.util import to_hex

    print(to_hex(_domain(args).separator()))
    return 0


def cmd_sign_deposit(args):
    """Sign a deposit authorization (Certificate)."""
    from timelock.signing import AuthorizationSigner
    from timelock.util import to_bytes32, to_hex

    signer = AuthorizationSigner(args.key, _domain(args))
    message, signature = signer.deposit_authorization(
        institution=args.institution,
        tons=args.tons,
        base_year=args.base_year,
        base_month=args.base_month,
        timespan=args.timespan,
        deadline=_deadline(args),
        authorization=to_bytes32(args.authorization) if args.authorization else None,
    )
    _emit({"authorization": message.to_json_dict(), "signature": to_hex(signature)}, args.output)
    return 0


def cmd_sign_release(args):
    """Sign a release sign-off for one lock."""
    from timelock.signing import AuthorizationSigner
    from timelock.util import to_bytes32, to_hex

    signer = AuthorizationSigner(args.key, _domain(args))
    message, signature = signer.release_authorization(
        account=args.account,
        lock_index=args.lock_index,
        deadline=_deadline(args),
        authorization=to_bytes32(args.authorization) if args.authorization else None,
    )
    _emit({"authorization": message.to_json_dict(), "signature": to_hex(signature)}, args.output)
    return 0


def cmd_verify_events(args):
    """Verify an exported event log."""
    from timelock.events import verify_event_chain

    entries = load_json(args.events)
    valid, reason = verify_event_chain(entries, args.public_key)
    if valid:
        print(f"VALID: {len(entries)} entries")
        return 0
    print(f"INVALID: {reason}", file=sys.stderr)
    return 1


def cmd_demo(args):
    """Run a lock/unlock demonstration against in-memory collaborators."""
    from timelock.collaborators import InMemoryCredentialRegistry, InMemoryToken
    from timelock.errors import InLockPeriod
    from timelock.service import TimeLock, TimeLockSettings
    from timelock.signing import AuthorizationSigner

    admin = Account.create()
    holder = Account.create()
    escrow_address = Account.create().address

    clock = {"now": 1_700_000_000}
    settings = TimeLockSettings(service_address=escrow_address, admin=admin.address)
    token = InMemoryToken(balances={holder.address: 200})
    registry = InMemoryCredentialRegistry(admin=escrow_address)
    service = TimeLock(
        settings,
        token.client(escrow_address),
        credential_registry=registry.client(escrow_address),
        clock=lambda: clock["now"],
    )
    certifier = AuthorizationSigner(admin.key, settings.domain())

    print("=" * 60)
    print("TimeLock demonstration")
    print("=" * 60)

    auth, sig = certifier.deposit_authorization(
        "Acme Inc.", tons=3, base_year=2024, base_month=1, timespan=12,
        deadline=clock["now"] + 86400,
    )
    token.approve(holder.address, escrow_address, 100)
    index = service.lock(holder.address, 100, auth, sig)
    print(f"Locked 100 at index {index}; custody balance {token.balance_of(escrow_address)}")

    clock["now"] += 1
    try:
        service.unlock(holder.address, index)
    except InLockPeriod as e:
        print(f"Unlock at t+1 rejected: {e.code.value}")

    clock["now"] += service.default_lock_period
    service.unlock(holder.address, index)
    print(f"Unlocked; custody balance {token.balance_of(escrow_address)}")
    print(f"Certificate status: {service.certificate_status(holder.address, index).value}")
    return 0


def _add_domain_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("-C", "--contract", required=True, help="Service (verifying contract) address")
    p.add_argument("--chain-id", type=int, default=CHAIN_ID, help="Execution context identifier")
    p.add_argument("--name", default=DOMAIN_NAME, help="Protocol name")
    p.add_argument("--version", default=DOMAIN_VERSION, help="Protocol version")


def _add_signing_args(p: argparse.ArgumentParser) -> None:
    _add_domain_args(p)
    p.add_argument("-k", "--key", required=True, help="Signer private key (hex)")
    p.add_argument("--authorization", help="Authorization token (32-byte hex); random if omitted")
    p.add_argument("--deadline", type=int, help="Absolute deadline (epoch seconds)")
    p.add_argument("--ttl", type=int, default=86400, help="Deadline relative to now, if --deadline absent")
    p.add_argument("-o", "--output", help="Output file")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timelock",
        description="TimeLock escrow CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  timelock keygen -o signer.json
  timelock domain-separator -C 0x5FbDB2315678afecb367f032d93F642f64180aa3
  timelock sign-deposit -k 0x... -C 0x... --institution "Acme Inc." --tons 3 \\
      --base-year 2024 --base-month 1 --timespan 12
  timelock verify-events --events events.json --public-key <b64>
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    keygen_parser = subparsers.add_parser("keygen", help="Generate a signer account")
    keygen_parser.add_argument("-o", "--output", help="Output file")

    event_keygen_parser = subparsers.add_parser("event-keygen", help="Generate an event signing key")
    event_keygen_parser.add_argument("-o", "--output", required=True, help="Key file to write")
    event_keygen_parser.add_argument("--kid", default="timelock-events-01", help="Key identifier")

    domain_parser = subparsers.add_parser("domain-separator", help="Print the domain separator")
    _add_domain_args(domain_parser)

    deposit_parser = subparsers.add_parser("sign-deposit", help="Sign a deposit authorization")
    _add_signing_args(deposit_parser)
    deposit_parser.add_argument("--institution", required=True, help="Institution name (<= 31 bytes) or bytes32 hex")
    deposit_parser.add_argument("--tons", type=int, required=True)
    deposit_parser.add_argument("--base-year", type=int, required=True)
    deposit_parser.add_argument("--base-month", type=int, required=True)
    deposit_parser.add_argument("--timespan", type=int, required=True)

    release_parser = subparsers.add_parser("sign-release", help="Sign a release sign-off")
    _add_signing_args(release_parser)
    release_parser.add_argument("-a", "--account", required=True, help="Lock owner address")
    release_parser.add_argument("-i", "--lock-index", type=int, required=True, help="Lock index")

    verify_parser = subparsers.add_parser("verify-events", help="Verify an exported event log")
    verify_parser.add_argument("-e", "--events", required=True, help="Event log JSON file")
    verify_parser.add_argument("-p", "--public-key", help="Ed25519 public key (base64)")

    subparsers.add_parser("demo", help="Run demonstration")

    return parser


COMMANDS = {
    "keygen": cmd_keygen,
    "event-keygen": cmd_event_keygen,
    "domain-separator": cmd_domain_separator,
    "sign-deposit": cmd_sign_deposit,
    "sign-release": cmd_sign_release,
    "verify-events": cmd_verify_events,
    "demo": cmd_demo,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        return handler(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
