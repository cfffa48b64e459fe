"""
CLI Tool for the Provider Registry Validator

Commands:
    search      Search the US NPI or India HPR registry
    validate    Score a provider record against the registry
    save        Save a registry record (JSON file) to the provider directory
    lookup      Cache-first lookup by NPI / provider id
    serve       Run the HTTP endpoint

Usage:
    python -m src.cli search --country US --npi 1234567893
    python -m src.cli validate --country US --npi 1234567893 --name "John Smith" --phone "(555) 123-4567"
    python -m src.cli save --country IN --file provider.json --score 72
    python -m src.cli lookup --country US --identifier 1234567893 --force-refresh
    python -m src.cli serve --port 8000

The bearer credential comes from --token or REGISTRY_API_TOKEN.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.api.registry_api import RegistryAPI  # noqa: E402


def setup_logging(verbose: bool = False):
    """Configure logging based on verbosity"""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S"
    )


def get_authorization(args) -> str:
    token = args.token or os.getenv("REGISTRY_API_TOKEN", "")
    return f"Bearer {token}" if token else ""


def print_banner():
    """Print application banner"""
    print("""
 ================================================
   Provider Registry Validator
   US NPI / India HPR correctness check
 ================================================
""")


def print_provider(provider: dict):
    identifier = provider.get("npi_number") or provider.get("provider_id") or "-"
    location = ", ".join(p for p in (provider.get("city"), provider.get("state")) if p)
    print(f"  {identifier:<14} {provider.get('name', '')}")
    if provider.get("specialty"):
        print(f"  {'':<14} {provider['specialty']}")
    if location:
        print(f"  {'':<14} {location} {provider.get('postal_code') or ''}".rstrip())


def report_error(status: int, payload: dict) -> int:
    print(f"  ERROR ({status}, {payload.get('errorType', 'error')}): {payload.get('error', 'Unknown error')}")
    return 1


def cmd_search(args, api: RegistryAPI) -> int:
    """Handle 'search' command"""
    params = {
        "country": args.country,
        "npi": args.npi,
        "providerId": args.provider_id,
        "firstName": args.first_name,
        "lastName": args.last_name,
        "name": args.name,
        "city": args.city,
        "state": args.state,
        "postalCode": args.postal_code,
        "limit": args.limit,
    }
    status, payload = api.handle_sync("search", get_authorization(args), params=params)
    if status != 200:
        return report_error(status, payload)

    if args.json:
        print(json.dumps(payload, indent=2, default=str))
        return 0

    providers = payload["data"]
    print(f"  {len(providers)} provider(s) found in {args.country} registry\n")
    for provider in providers:
        print_provider(provider)
        print()
    return 0


def cmd_validate(args, api: RegistryAPI) -> int:
    """Handle 'validate' command"""
    user_data = {
        "npi_number": args.npi,
        "provider_id": args.provider_id,
        "name": args.name,
        "first_name": args.first_name,
        "last_name": args.last_name,
        "phone": args.phone,
        "address_line1": args.address,
        "city": args.city,
        "state": args.state,
        "postal_code": args.postal_code,
        "specialty": args.specialty,
    }
    body = {"country": args.country, "userData": {k: v for k, v in user_data.items() if v}}

    status, payload = api.handle_sync("validate", get_authorization(args), body=body)
    if status != 200:
        return report_error(status, payload)

    if args.json:
        print(json.dumps(payload, indent=2, default=str))
        return 0

    if not payload.get("found"):
        print(f"  {payload.get('message', 'No matching provider found in registry')}")
        return 0

    registry = payload["registryData"]
    print(f"  Matched: {registry['name']} ({registry.get('npi_number') or registry.get('provider_id')})")
    print(f"  Correctness score: {payload['correctnessScore']}%\n")

    print(f"  {'Field':<15} {'Status':<9} {'You entered':<30} Registry")
    print("  " + "-" * 80)
    for field_name, detail in payload["fieldScores"].items():
        print(
            f"  {field_name:<15} {detail['status']:<9} "
            f"{detail['userValue'][:29]:<30} {detail['registryValue']}"
        )
    print()
    return 0


def cmd_save(args, api: RegistryAPI) -> int:
    """Handle 'save' command"""
    provider_path = Path(args.file)
    if not provider_path.exists():
        print(f"  ERROR: File not found: {provider_path}")
        return 1

    with open(provider_path, 'r') as f:
        provider = json.load(f)

    body = {"provider": provider, "country": args.country, "correctnessScore": args.score}
    status, payload = api.handle_sync("save", get_authorization(args), body=body)
    if status != 200:
        return report_error(status, payload)

    saved = payload["provider"]
    print(f"  Saved provider #{saved['id']}: {saved['name']}")
    if saved.get("needs_review"):
        print("  Flagged for review (correctness below threshold)")
    if payload.get("auditError"):
        print(f"  WARNING: audit log not written: {payload['auditError']}")
    return 0


def cmd_lookup(args, api: RegistryAPI) -> int:
    """Handle 'lookup' command"""
    params = {
        "country": args.country,
        "identifier": args.identifier,
        "forceRefresh": args.force_refresh,
    }
    status, payload = api.handle_sync("lookup", get_authorization(args), params=params)
    if status != 200:
        return report_error(status, payload)

    if not payload["found"]:
        print(f"  {payload.get('message', 'Provider not found in registry')}")
        return 1

    print(f"  Source: {'cache' if payload['fromCache'] else 'registry (refreshed)'}\n")
    print_provider(payload["provider"])
    print()
    return 0


def cmd_serve(args, api: RegistryAPI) -> int:
    """Handle 'serve' command"""
    import uvicorn

    from src.api.server import create_app

    uvicorn.run(create_app(api), host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser"""
    parser = argparse.ArgumentParser(
        prog="provider-registry",
        description="Provider Registry Validator - check provider data against US NPI / India HPR"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")

    # Common args
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--token", help="Bearer token (or set REGISTRY_API_TOKEN)")
    common.add_argument("--country", choices=["US", "IN"], default="US", help="Registry country (default: US)")
    common.add_argument("--json", action="store_true", help="Print the raw JSON response")

    # Provider fields shared by search and validate
    fields = argparse.ArgumentParser(add_help=False)
    fields.add_argument("--npi", help="US NPI number")
    fields.add_argument("--provider-id", help="India HPR id / registration number")
    fields.add_argument("--name", help="Full or organization name")
    fields.add_argument("--first-name", help="First name")
    fields.add_argument("--last-name", help="Last name")
    fields.add_argument("--city", help="City")
    fields.add_argument("--state", help="State")
    fields.add_argument("--postal-code", help="Postal / PIN code")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Search command
    search_parser = subparsers.add_parser("search", parents=[common, fields], help="Search a registry")
    search_parser.add_argument("--limit", type=int, default=10, help="Max results (default: 10)")

    # Validate command
    validate_parser = subparsers.add_parser(
        "validate", parents=[common, fields], help="Score provider data against the registry"
    )
    validate_parser.add_argument("--phone", help="Phone number")
    validate_parser.add_argument("--address", help="Address line 1")
    validate_parser.add_argument("--specialty", help="Specialty / taxonomy description")

    # Save command
    save_parser = subparsers.add_parser("save", parents=[common], help="Save a registry record")
    save_parser.add_argument("--file", "-f", required=True, help="Provider JSON (as returned by search)")
    save_parser.add_argument("--score", type=float, help="Correctness score from a prior validate")

    # Lookup command
    lookup_parser = subparsers.add_parser("lookup", parents=[common], help="Cache-first provider lookup")
    lookup_parser.add_argument("--identifier", "-i", required=True, help="NPI number or provider id")
    lookup_parser.add_argument("--force-refresh", action="store_true", help="Bypass the cache")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP endpoint")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")

    return parser


def main():
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose)

    commands = {
        "search": cmd_search,
        "validate": cmd_validate,
        "save": cmd_save,
        "lookup": cmd_lookup,
        "serve": cmd_serve,
    }

    handler = commands.get(args.command)
    if handler:
        if args.command != "serve":
            print_banner()
        return handler(args, RegistryAPI.from_env())
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
