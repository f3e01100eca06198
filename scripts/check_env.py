"""Pre-flight check for the listing service's ``.env`` file.

``check`` resolves the eBay credentials from the file and reports what the API
will run against: the eBay environment, its endpoints and where encrypted
tokens are written. ``record`` and ``verify`` additionally pin the file to a
SHA256 baseline so a redeploy that silently drops a credential is caught
before sellers start seeing "connect your account" errors.

Example::

    python -m scripts.check_env record --env-file /srv/listings/.env \
        --hash-file /srv/listings/.env.sha256
    python -m scripts.check_env verify --env-file /srv/listings/.env \
        --hash-file /srv/listings/.env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import os
import sys
from pathlib import Path
from typing import List, Tuple

from pydantic import ValidationError

from app.core.config import AppSettings, EbayConfig, _load_env_file, resolve_ebay_config
from app.core.errors import EbayConfigError

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5

# name -> (help, needs --hash-file, hash-file help)
_COMMANDS = {
    "check": ("Resolve eBay settings and print a summary.", False, None),
    "record": (
        "Resolve eBay settings and store the checksum baseline.",
        True,
        "Location to write the checksum baseline.",
    ),
    "verify": (
        "Resolve eBay settings and compare the checksum with the baseline.",
        True,
        "Location of the previously recorded checksum baseline.",
    ),
}


def _checksum(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load(env_file: Path) -> Tuple[AppSettings, EbayConfig]:
    """Resolve settings exactly as the API would for ``env_file``."""
    _load_env_file(str(env_file))
    settings = AppSettings(_env_file=env_file)  # type: ignore[call-arg]
    return settings, resolve_ebay_config(settings.ebay)


def _summary(settings: AppSettings, config: EbayConfig) -> Tuple[List[str], List[str]]:
    """Return ``(info, warnings)`` lines describing the resolved setup."""
    info = [
        f"Settings OK (eBay environment: {config.environment}).",
        f"  auth:   {config.auth_base_url}",
        f"  api:    {config.api_base_url}",
        f"  tokens: {settings.token_db_path}",
    ]
    warnings: List[str] = []
    if not settings.security.token_encryption_secret:
        warnings.append(
            "TOKEN_ENCRYPTION_SECRET is not set; stored tokens are encrypted with "
            "EBAY_CLIENT_SECRET and become unreadable if it is rotated."
        )
    db_dir = Path(settings.token_db_path).expanduser().resolve().parent
    probe = db_dir
    while not probe.exists() and probe != probe.parent:
        probe = probe.parent
    if not os.access(probe, os.W_OK):
        warnings.append(f"Token database directory {db_dir} is not writable.")
    return info, warnings


def _record(env_file: Path, hash_file: Path) -> int:
    checksum = _checksum(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"No checksum baseline at {hash_file}. Run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _checksum(env_file)
    if expected != actual:
        print(
            f"{env_file} changed since the baseline was recorded.\n"
            f"  expected: {expected}\n"
            f"  actual:   {actual}",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR

    print("Environment checksum OK.")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check eBay credentials in a .env file and detect drift."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, (help_text, needs_hash, hash_help) in _COMMANDS.items():
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Environment file to check (default: ./.env).",
        )
        if needs_hash:
            sub.add_argument("--hash-file", required=True, type=Path, help=hash_help)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.is_file():
        print(f"Environment file {env_file} does not exist.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings, config = _load(env_file)
    except EbayConfigError as exc:
        print(f"eBay configuration incomplete: {exc.message}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except ValidationError as exc:
        print(f"Invalid settings in {env_file}:\n{exc.json(indent=2)}", file=sys.stderr)
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error while loading {env_file}: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    info, warnings = _summary(settings, config)
    print("\n".join(info))
    for warning in warnings:
        print(f"warning: {warning}", file=sys.stderr)

    if args.command == "record":
        return _record(env_file, args.hash_file)
    if args.command == "verify":
        return _verify(env_file, args.hash_file)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
