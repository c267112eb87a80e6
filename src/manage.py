"""Ordering service management CLI.

Creates and drops the relational schema, and purges guest grants that can
no longer be replayed.

Usage:
    python src/manage.py setup-db             # Create all tables
    python src/manage.py drop-db              # Drop all tables
    python src/manage.py purge-guest-grants   # Delete stale guest grants
"""

import argparse
import sys


def _ordering_domain():
    from ordering.domain import ordering

    ordering.init()
    return ordering


def setup_database():
    from ordering.utils.db import setup_db

    domain = _ordering_domain()
    print("Creating ordering database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from ordering.utils.db import drop_db

    domain = _ordering_domain()
    print("Dropping ordering database schema...")
    drop_db(domain)
    print("Done.")


def purge_guest_grants():
    from ordering.guest.purge import PurgeGuestGrants

    domain = _ordering_domain()
    with domain.domain_context():
        purged = domain.process(PurgeGuestGrants(), asynchronous=False)
    print(f"Purged {purged} guest grant(s).")


def main():
    parser = argparse.ArgumentParser(description="Ordering service management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("purge-guest-grants", help="Delete guest grants past their replay window")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "purge-guest-grants":
        purge_guest_grants()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
