#!/usr/bin/env python3
"""Generate a signed Telegram launch payload for local testing.

Usage:
    python scripts/generate-init-data.py --token TOKEN [--id ID] [--first-name NAME]

Examples:
    # Payload for the default test user, signed with the configured token
    TELEGRAM_BOT_TOKEN=123:abc python scripts/generate-init-data.py

    # Payload for a specific user, stamped an hour ago
    python scripts/generate-init-data.py --token 123:abc --id 42 \\
        --first-name Ada --last-name Lovelace --age 3600

The script outputs:
1. The encoded payload (send it in the X-Telegram-Init-Data header)
2. A curl command that calls GET /api/users/me with it
"""

import argparse
import json
import os
import sys
import time

from travelplanner.auth.init_data import sign_init_data


def build_fields(args: argparse.Namespace) -> dict[str, str]:
    """Assemble the unsigned payload fields."""
    user = {"id": args.id, "first_name": args.first_name}
    if args.last_name:
        user["last_name"] = args.last_name
    if args.username:
        user["username"] = args.username
    if args.photo_url:
        user["photo_url"] = args.photo_url

    return {
        "query_id": args.query_id,
        "user": json.dumps(user, separators=(",", ":"), ensure_ascii=False),
        "auth_date": str(int(time.time()) - args.age),
    }


def main():
    parser = argparse.ArgumentParser(
        description="Generate a signed Telegram launch payload",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--token",
        default=os.getenv("TELEGRAM_BOT_TOKEN"),
        help="Bot token used as the shared secret (default: $TELEGRAM_BOT_TOKEN)",
    )
    parser.add_argument("--id", type=int, default=123456789, help="Telegram user id")
    parser.add_argument("--first-name", default="Test", help="First name (default: Test)")
    parser.add_argument("--last-name", help="Last name")
    parser.add_argument("--username", help="Username")
    parser.add_argument("--photo-url", help="Avatar URL")
    parser.add_argument("--query-id", default="AAHdF6IQAAAAAN0XohDhrOrc", help="query_id field")
    parser.add_argument(
        "--age",
        type=int,
        default=0,
        help="Seconds to subtract from the current time for auth_date (default: 0)",
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Service base URL for the sample curl command",
    )

    args = parser.parse_args()

    if not args.token:
        print("Error: no bot token. Pass --token or set TELEGRAM_BOT_TOKEN.")
        sys.exit(1)

    payload = sign_init_data(build_fields(args), args.token)

    print("=" * 60)
    print("Telegram Launch Payload Generator")
    print("=" * 60)
    print()
    print("INIT DATA (use in X-Telegram-Init-Data header):")
    print(f"  {payload}")
    print()
    print("SAMPLE REQUEST:")
    print(f"  curl -H 'X-Telegram-Init-Data: {payload}' {args.url}/api/users/me")
    print()
    print("=" * 60)
    print("The payload is valid for TELEGRAM_INIT_DATA_MAX_AGE seconds")
    print("(default 86400) from its auth_date.")
    print("=" * 60)


if __name__ == "__main__":
    main()
