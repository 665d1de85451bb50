#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0

"""
Script to generate an RSA key pair for JWT signing.

Prints the keys as JWT_PRIVATE_KEY / JWT_PUBLIC_KEY environment variables so
tokens stay valid across restarts. Run with
``python -m civic_tracker.scripts.generate_jwt_keys``.
"""

from ..services.auth import generate_rsa_key_pair


def format_env_vars(private_key: str, public_key: str) -> str:
    newline = "\\n"
    return "\n".join([
        f'JWT_PRIVATE_KEY="{private_key.replace(chr(10), newline)}"',
        f'JWT_PUBLIC_KEY="{public_key.replace(chr(10), newline)}"'
    ])


if __name__ == "__main__":
    private_key, public_key = generate_rsa_key_pair()
    print(format_env_vars(private_key, public_key))
