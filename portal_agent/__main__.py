#!/usr/bin/env python3
"""
Command-line Interface for the Portal Agent
===========================================
Logs into the portal with stored credentials and exports the request
history.

Stored credentials come from ``PORTAL_USER_ID`` / ``PORTAL_SECRET`` (or the
``UNIPOST_`` equivalents).  ``PORTAL_SECRET`` must be encrypted; produce it
with the ``encrypt`` subcommand.

Run with: python -m portal_agent
"""

import argparse
import asyncio
import csv
import getpass
import json
import logging
import sys
from pathlib import Path
from typing import List

from dotenv import load_dotenv

from .auth import AesCredentialCodec
from .engine import PortalEngine
from .models import ExtractedRecord
from .run_config import PortalRunConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Export helpers
# ---------------------------------------------------------------------------

def export_json(records: List[ExtractedRecord], filepath: str) -> str:
    output_path = Path(filepath)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        'metadata': {'total_records': len(records)},
        'records': [r.to_dict() for r in records],
    }
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    logger.info(f"Exported JSON to {output_path.absolute()}")
    return str(output_path.absolute())


def export_csv(records: List[ExtractedRecord], filepath: str) -> str:
    output_path = Path(filepath)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    fieldnames = list(ExtractedRecord().to_dict().keys())
    # utf-8-sig so spreadsheet tools pick up the Korean text
    with open(output_path, 'w', encoding='utf-8-sig', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        for record in records:
            writer.writerow(record.to_dict())
    logger.info(f"Exported CSV to {output_path.absolute()}")
    return str(output_path.absolute())


def print_records(records: List[ExtractedRecord]) -> None:
    print("\n" + "=" * 65)
    print(f"REQUEST HISTORY ({len(records)} records)")
    print("=" * 65)
    for record in records:
        print(f"  [{record.status or '-'}] {record.id:>8}  {record.submitted_at:<12} {record.title}")
    print("=" * 65)


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------

async def _cmd_login(engine: PortalEngine, args) -> int:
    result = await engine.login_with_stored_credentials()
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    if result.success and args.show_browser:
        await engine.set_surface_visible(True)
        await asyncio.get_running_loop().run_in_executor(
            None, input, "\nLogged in. Press Enter to close the browser..."
        )
    return 0 if result.success else 1


async def _cmd_fetch(engine: PortalEngine, args) -> int:
    auth = await engine.login_with_stored_credentials()
    if not auth.success:
        print(json.dumps(auth.to_dict(), ensure_ascii=False, indent=2))
        return 1

    result = await engine.fetch_records(args.name, args.partition or "")
    if not result.success:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return 1

    print_records(result.data)
    exported = []
    if args.output_json:
        exported.append(export_json(result.data, args.output_json))
    if args.output_csv:
        exported.append(export_csv(result.data, args.output_csv))
    for path in exported:
        print(f"  Exported: {path}")
    return 0


def _cmd_encrypt(config: PortalRunConfig) -> int:
    secret = getpass.getpass("Secret to encrypt: ")
    if not secret:
        print("Error: secret is required")
        return 1
    codec = AesCredentialCodec(config.codec_passphrase, config.codec_salt)
    print(codec.encrypt(secret))
    return 0


async def _run(args, config: PortalRunConfig) -> int:
    engine = PortalEngine(config)
    try:
        if args.command == 'login':
            return await _cmd_login(engine, args)
        return await _cmd_fetch(engine, args)
    finally:
        await engine.close()


# ---------------------------------------------------------------------------
# Flag-driven entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='portal-agent',
        description='Portal Agent - login and request-history extraction',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m portal_agent encrypt                      # Encrypt a secret for PORTAL_SECRET
  python -m portal_agent login --show-browser         # Log in with a visible window
  python -m portal_agent fetch "Hong Gildong" --partition 1N2 --output-csv out.csv
        """
    )
    parser.add_argument('--show-browser', action='store_true',
                        help='Run a headed browser instead of headless')
    parser.add_argument('--entry-url', type=str, metavar='URL',
                        help='Portal login page URL (overrides PORTAL_ENTRY_URL)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')

    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('login', help='Log in with stored credentials and report the outcome')

    fetch = sub.add_parser('fetch', help='Log in and extract request history')
    fetch.add_argument('name', help='Handler name to search by')
    fetch.add_argument('--partition', type=str, default='',
                       help='Partition codes, digits separated by "N" (e.g. 1N2)')
    fetch.add_argument('--output-json', type=str, help='JSON output file path')
    fetch.add_argument('--output-csv', type=str, help='CSV output file path')

    sub.add_parser('encrypt', help='Encrypt a secret for PORTAL_SECRET')
    return parser


def main(argv=None) -> int:
    # Load .env before reading any configuration
    env_path = Path(__file__).resolve().parent.parent / '.env'
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(message)s',
        datefmt='%H:%M:%S'
    )

    config = PortalRunConfig.from_cli_args(args)
    if args.command == 'encrypt':
        return _cmd_encrypt(config)

    config.log_summary()
    try:
        return asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == '__main__':
    sys.exit(main())
