#!/usr/bin/env python3
import argparse
import asyncio
import getpass
import json
import logging
import sys

from .config import VaultConfig
from .errors import ConfigurationError, SolaceVaultError
from .services import PrivacyServices
from .step_up import TOTPAuthenticator, load_totp_secret, setup_totp_secret


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _prompt_totp_code(reason: str) -> str:
    return getpass.getpass(f"{reason}. TOTP code: ")


def _build_authenticator(config: VaultConfig):
    """TOTP step-up for protected entries once `setup-totp` has provisioned a secret."""
    try:
        secret = load_totp_secret(config.totp_secret_path)
    except OSError as e:
        raise ConfigurationError(f"Cannot read TOTP secret at {config.totp_secret_path}", cause=e)
    if secret is None:
        return None
    return TOTPAuthenticator(secret, _prompt_totp_code)


async def _run(args, config: VaultConfig) -> int:
    async with PrivacyServices(config, authenticator=_build_authenticator(config)) as services:
        if args.command == "audit":
            entries = await services.get_audit_logs(limit=args.limit)
            _print([e.to_dict() for e in entries])

        elif args.command == "consent-status":
            status = await services.get_consent_status()
            _print({
                "has_consent": status.has_consent,
                "needs_update": status.needs_update,
                "categories": status.record.consents if status.record else {},
                "version": config.consent_version,
            })

        elif args.command == "export":
            bundle = await services.export_user_data()
            if args.output:
                with open(args.output, "w") as f:
                    json.dump(bundle.to_dict(), f, indent=2)
                print(f"Export written to {args.output} ({len(bundle.data)} sections)")
            else:
                _print(bundle.to_dict())

        elif args.command == "retention":
            report = await services.check_data_retention()
            _print(report.to_dict())

        elif args.command == "erase":
            receipt = await services.delete_user_data(args.code)
            _print(receipt.to_dict())

        elif args.command == "keys":
            _print(await services.secure_store.list_keys())

    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="solace-vault",
        description="Solace Vault CLI - encrypted health data, audit trail and consent records"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_audit = subparsers.add_parser("audit", help="Show the access audit log")
    p_audit.add_argument("--limit", type=int, default=None, help="Show only the most recent N entries")

    subparsers.add_parser("consent-status", help="Show current consent status")

    p_export = subparsers.add_parser("export", help="Export all user data (data portability)")
    p_export.add_argument("--output", help="Write the bundle to this file instead of stdout")

    subparsers.add_parser("retention", help="Evaluate the data retention window")

    p_erase = subparsers.add_parser("erase", help="Erase all user data (right to erasure)")
    p_erase.add_argument("--code", default=None, help="Verification code (required outside dev mode)")

    subparsers.add_parser("keys", help="List stored secure entry names")

    subparsers.add_parser("setup-totp", help="Generate a TOTP secret for step-up authentication")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = VaultConfig.from_env().validate()

        if args.command == "setup-totp":
            secret, uri = setup_totp_secret(config.totp_secret_path)
            print("Provisioning URI (scan as QR code):")
            print(uri)
            print(f"\nManual entry secret: {secret}")
            return 0

        return asyncio.run(_run(args, config))
    except SolaceVaultError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
