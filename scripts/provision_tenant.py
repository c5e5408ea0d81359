#!/usr/bin/env python3
"""
Provision a tenant and print its first API key.

Useful for local development and for onboarding a company before the
account UI is wired to the identity provider.

Usage:
    uv run python scripts/provision_tenant.py <tenant_id> "<company name>"
    uv run python scripts/provision_tenant.py <tenant_id> --regenerate
"""

import argparse
import asyncio
import sys

from feedback_api.db.engine import async_session_factory, create_tables, dispose_engine
from feedback_api.exceptions import TenantExistsError, TenantNotFoundError
from feedback_api.services.credentials import SqlCredentialStore
from feedback_api.services.tenants import SqlTenantStore


async def _provision(tenant_id: str, display_name: str | None, regenerate: bool) -> int:
    await create_tables()
    try:
        async with async_session_factory() as session:
            credentials = SqlCredentialStore(session)

            if regenerate:
                try:
                    api_key = await credentials.regenerate(tenant_id)
                except TenantNotFoundError as e:
                    print(e, file=sys.stderr)
                    return 1
            else:
                if not display_name:
                    print("A company name is required", file=sys.stderr)
                    return 2
                try:
                    await SqlTenantStore(session).create(tenant_id, display_name)
                except TenantExistsError as e:
                    print(e, file=sys.stderr)
                    return 1
                api_key = await credentials.current_active_key(tenant_id)

            print(f"tenant:  {tenant_id}")
            print(f"key id:  {api_key.id}")
            print(f"api key: {api_key.key}")
            return 0
    finally:
        await dispose_engine()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("tenant_id", help="Identity-provider subject of the company")
    parser.add_argument("display_name", nargs="?", help="Company name")
    parser.add_argument(
        "--regenerate",
        action="store_true",
        help="Rotate the key of an existing tenant instead of creating one",
    )
    args = parser.parse_args()
    return asyncio.run(_provision(args.tenant_id, args.display_name, args.regenerate))


if __name__ == "__main__":
    sys.exit(main())
