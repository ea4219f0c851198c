#!/usr/bin/env python3
"""
Family Reunion Registry API server

Usage:
    python -m registration_webapp                 # Serve on HOST:PORT from settings
    python -m registration_webapp --port 8080     # Override the port
    python -m registration_webapp --stats         # Print registration stats and exit
"""
import argparse
import sys

import uvicorn
from loguru import logger

from services.family_tree import compute_stats
from shared.config import get_settings
from shared.errors import StoreError
from shared.store import MemberStore


def main():
    parser = argparse.ArgumentParser(description="Family Reunion Registry API server")
    parser.add_argument("--host", help="Bind address (default: HOST setting)")
    parser.add_argument("--port", type=int, help="Listen port (default: PORT setting)")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes")
    parser.add_argument("--stats", action="store_true", help="Show registration statistics and exit")
    args = parser.parse_args()

    settings = get_settings()

    if args.stats:
        try:
            stats = compute_stats(MemberStore(settings.members_file).read())
        except StoreError as e:
            logger.error(f"Could not read registrations: {e}")
            sys.exit(1)
        print("Registration Statistics:")
        print(f"  Members:    {stats.total_members}")
        print(f"  Attendees:  {stats.total_attendees}")
        for generation, count in sorted(stats.by_generation.items()):
            print(f"  Generation {generation}: {count}")
        return

    uvicorn.run(
        "registration_webapp.main:create_app",
        factory=True,
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
