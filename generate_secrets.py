#!/usr/bin/env python3
"""
Generate secure secrets for the weekly predictor
Run this script to generate SECRET_KEY and the ADMIN_SECRET used by the
X-Admin-Secret header on admin endpoints
"""

import secrets


def generate_secrets():
    """Generate secure random keys for the application"""
    print("🔐 Generating secure secrets for the weekly predictor...")
    print("=" * 50)

    secret_key = secrets.token_urlsafe(32)
    admin_secret = secrets.token_urlsafe(24)

    print(f"SECRET_KEY={secret_key}")
    print(f"ADMIN_SECRET={admin_secret}")

    print("=" * 50)
    print("📝 Copy these values to your .env file")
    print("⚠️  Keep these secrets secure and never commit them to version control!")


if __name__ == "__main__":
    generate_secrets()
