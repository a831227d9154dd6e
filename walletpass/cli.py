"""
Command line interface.

    walletpass build TEMPLATE_DIR --fields fields.json --out my.pkpass
    walletpass inspect my.pkpass --verify
"""
import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from walletpass.core.config import settings
from walletpass.core.errors import PassConfigError, PassError
from walletpass.services.bundle import get_signer
from walletpass.services.credentials import SigningCredentials
from walletpass.services.template import PassTemplate
from walletpass.services.verify import inspect_bundle, verify_bundle_openssl


def _load_fields(path: Optional[str]) -> dict:
    if not path:
        return {}
    try:
        fields = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise PassConfigError(f"Cannot read fields file {path}: {e}") from e
    if not isinstance(fields, dict):
        raise PassConfigError(f"Fields file {path} must contain a JSON object")
    return fields


def cmd_build(args) -> int:
    template = PassTemplate.load(args.template_dir, args.key_password or None)
    pass_ = template.create_pass(_load_fields(args.fields))

    if args.cert:
        cert_pem = Path(args.cert).read_bytes()
        key_pem = Path(args.key).read_bytes() if args.key else None
        pass_.credentials = SigningCredentials.from_pem(cert_pem, key_pem, args.key_password or None)
    elif pass_.credentials is None and settings.signing_configured:
        pass_.credentials = SigningCredentials.from_settings(settings)

    config = settings.model_copy(update={"WALLETPASS_SIGNING_BACKEND": args.backend}) if args.backend else settings
    size = pass_.write(args.out, signer=get_signer(config))
    print(f"Wrote {args.out} ({size} bytes)")
    return 0


def cmd_inspect(args) -> int:
    bundle = Path(args.file).read_bytes()
    report = inspect_bundle(bundle)

    print(f"{args.file}: {len(bundle)} bytes, {len(report.files)} entries")
    for name, size in sorted(report.files.items()):
        print(f"  {name} ({size} bytes)")
    if report.signature is not None:
        print("Signature certificates:")
        for subject in report.signature.subjects:
            print(f"  {subject}")

    ok = report.ok
    for error in report.errors:
        print(f"ERROR: {error}")

    if args.verify:
        verified, output = verify_bundle_openssl(bundle, settings.WALLETPASS_OPENSSL_BIN)
        print(f"OpenSSL verification: {'OK' if verified else 'FAILED'}")
        if output and not verified:
            print(output)
        ok = ok and verified

    print("Bundle OK" if ok else "Bundle has problems")
    return 0 if ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="walletpass", description="Build and inspect Apple Wallet passes")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build", help="Build a signed .pkpass from a template folder")
    build.add_argument("template_dir", help="Template folder with pass.json, images and *.lproj")
    build.add_argument("--fields", help="JSON file with pass.json keys overriding the template")
    build.add_argument("--out", required=True, help="Output .pkpass path")
    build.add_argument("--cert", help="Signer certificate PEM (overrides the template certificate)")
    build.add_argument("--key", help="Private key PEM (defaults to the key inside --cert)")
    build.add_argument("--key-password", default=settings.APPLE_WALLET_KEY_PASSWORD, help="Private key passphrase")
    build.add_argument("--backend", choices=["inprocess", "openssl"], help="Signing backend")
    build.set_defaults(func=cmd_build)

    inspect = subparsers.add_parser("inspect", help="Check a .pkpass manifest and signature")
    inspect.add_argument("file", help="Path to a .pkpass file")
    inspect.add_argument("--verify", action="store_true", help="Also verify the signature with openssl cms")
    inspect.set_defaults(func=cmd_inspect)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        return args.func(args)
    except PassError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
