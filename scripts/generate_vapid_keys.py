"""CLI script to generate a VAPID key pair for Web Push."""
from __future__ import annotations

import argparse

from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid01
from py_vapid.utils import b64urlencode


def generate_keys() -> tuple[str, str]:
    """Return ``(public_key, private_key)`` as urlsafe base64 without padding."""

    vapid = Vapid01()
    vapid.generate_keys()
    public_raw = vapid.public_key.public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
    )
    private_raw = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    return b64urlencode(public_raw), b64urlencode(private_raw)


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate VAPID keys for Web Push")
    parser.add_argument(
        "--subject",
        type=str,
        default="mailto:noreply@example.com",
        help="Contact URI placed in the VAPID claims",
    )
    args = parser.parse_args()

    public_key, private_key = generate_keys()
    print("Add these to your .env file:\n")
    print(f"VAPID_PUBLIC_KEY={public_key}")
    print(f"VAPID_PRIVATE_KEY={private_key}")
    print(f"VAPID_SUBJECT={args.subject}")


if __name__ == "__main__":
    main()
