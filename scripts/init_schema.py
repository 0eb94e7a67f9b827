#!/usr/bin/env python3
"""
Create the practice planner tables in Snowflake.

Optionally seeds a demo club (two locations, a handful of dogs and one
upcoming practice) so a fresh environment has something to plan.

Usage:
    python scripts/init_schema.py
    python scripts/init_schema.py --seed --member-id user_123

Requires:
    - .env file with Snowflake credentials (or SNOWFLAKE_MOCK_MODE=true
      for a dry run against the in-memory database)
"""

import sys
from datetime import timedelta
from pathlib import Path

# Add the project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from practice_planner.api.dependencies import snowflake_config_from_settings  # noqa: E402
from practice_planner.config.settings import get_settings  # noqa: E402
from practice_planner.core.practice.models import AttendanceStatus, utcnow  # noqa: E402
from practice_planner.infrastructure.snowflake.client import (  # noqa: E402
    create_snowflake_connection,
    ensure_schema,
)
from practice_planner.infrastructure.snowflake.repositories import PracticeRepository  # noqa: E402

DEMO_DOGS = [
    ("Alex", "Morgan", ["Pixel", "Rocket"]),
    ("Sam", "Rivera", ["Bolt"]),
    ("Jamie", "Chen", ["Juniper", "Mochi"]),
    ("Robin", "Okafor", ["Tango"]),
]


def seed_demo(practices: PracticeRepository, member_id: str) -> str:
    """Create the demo club and return the new practice's id."""
    club = practices.add_club("Demo Flyball Club", ideal_sets_per_dog=2)
    practices.add_member(club.id, member_id)
    practices.add_location(club.id, "Main Ring", is_default=True)
    practices.add_location(club.id, "Side Lanes", is_double_lane=True)

    practice = practices.add_practice(
        club.id,
        scheduled_at=utcnow() + timedelta(days=7),
        planned_by_id=member_id,
    )

    for given_name, surname, dog_names in DEMO_DOGS:
        handler = practices.add_handler(club.id, given_name, surname)
        for dog_name in dog_names:
            dog = practices.add_dog(club.id, dog_name, owner_id=handler.id)
            practices.set_attendance(practice.id, dog.id, AttendanceStatus.ATTENDING)
            print(f"[OK] {dog_name} ({handler.full_name})")

    print(f"\nClub: {club.id}")
    print(f"Practice: {practice.id}")
    return practice.id


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Create practice planner tables in Snowflake')
    parser.add_argument('--seed', action='store_true', help='Also create a demo club and practice')
    parser.add_argument('--member-id', default='demo-user', help='User id to add to the demo club')
    args = parser.parse_args()

    settings = get_settings()
    if settings.snowflake_mock_mode:
        print("Mock mode: tables are created in memory and discarded on exit")
    else:
        missing = settings.validate_required_fields()
        if missing:
            print(f"ERROR: Missing configuration: {', '.join(missing)}")
            sys.exit(1)

    try:
        with create_snowflake_connection(
            config=None if settings.snowflake_mock_mode else snowflake_config_from_settings(settings),
            mock_mode=settings.snowflake_mock_mode,
        ) as conn:
            ensure_schema(conn)
            print(f"[OK] Schema ready in {settings.snowflake_database}.{settings.snowflake_schema}")

            if args.seed:
                print("\nSeeding demo club...")
                seed_demo(PracticeRepository(conn), args.member_id)
    except Exception as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    sys.exit(0)


if __name__ == '__main__':
    main()
