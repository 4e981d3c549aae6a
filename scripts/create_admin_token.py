"""CLI script to issue an admin bearer token."""
from __future__ import annotations

import argparse

from pushadmin.core.security import create_admin_token


def main() -> None:
    parser = argparse.ArgumentParser(description="Create a signed admin JWT")
    parser.add_argument("subject", type=str, help="Operator identifier stored in the token")
    parser.add_argument(
        "--expires-minutes",
        type=int,
        default=None,
        help="Lifetime in minutes (default: ADMIN_TOKEN_EXPIRE_MINUTES)",
    )
    args = parser.parse_args()

    print(create_admin_token(args.subject, expires_minutes=args.expires_minutes))


if __name__ == "__main__":
    main()
