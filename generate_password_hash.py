#!/usr/bin/env python3
"""
Password Hash Generator
Generates bcrypt password hashes for CMS authentication and protected galleries.

    python generate_password_hash.py            # ADMIN_PASSWORD_HASH line for .env
    python generate_password_hash.py --gallery  # password line for a gallery.yaml
"""
import argparse
import getpass

from lumenpress.utils.auth import hash_password


def main():
    """Main function to generate password hash."""
    parser = argparse.ArgumentParser(description="Generate a bcrypt password hash")
    parser.add_argument(
        "--gallery",
        action="store_true",
        help="print a gallery.yaml `password:` line instead of an .env line",
    )
    args = parser.parse_args()

    target = "gallery.yaml" if args.gallery else ".env file as ADMIN_PASSWORD_HASH"
    print("=" * 60)
    print("LumenPress Password Hash Generator")
    print("=" * 60)
    print()
    print("This will generate a bcrypt hash for your password.")
    print(f"Copy the output to your {target}")
    print()

    # Get password securely (won't echo to screen)
    password = getpass.getpass("Enter password: ")

    if not password:
        print("\n❌ Error: Password cannot be empty")
        return

    # Confirm password
    password_confirm = getpass.getpass("Confirm password: ")

    if password != password_confirm:
        print("\n❌ Error: Passwords do not match")
        return

    print("\n⏳ Generating hash (this may take a moment)...")

    try:
        hashed = hash_password(password)
    except ValueError as e:
        # bcrypt rejects passwords longer than 72 bytes
        print(f"\n❌ Error generating hash: {str(e)}")
        return

    print("\n✅ Success! Copy this line:\n")
    if args.gallery:
        print(f'password: "{hashed}"')
    else:
        print(f"ADMIN_PASSWORD_HASH={hashed}")
    print()
    print("⚠️  Keep this hash secret and never commit it to version control!")
    print()


if __name__ == "__main__":
    main()
