"""CLI script to create the tables and bootstrap the backend DB.
Usage: python scripts/init_db.py [--seed-demo] [--reset]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `academy` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from academy.database import engine, create_db_and_tables, drop_db_and_tables
from academy.bootstrap import ensure_default_admin, seed_demo_data


def main(seed_demo: bool = False, reset: bool = False):
    """Create tables, ensure the default admin and optionally seed demo data.

    Every step is idempotent, so the script can be re-run against an
    existing database. `reset` drops all tables first.
    """
    print("Using database:", engine.url)
    if reset:
        print("Dropping all tables")
        drop_db_and_tables()
    create_db_and_tables()
    with Session(engine) as session:
        admin = ensure_default_admin(session)
        if admin:
            print(f'Created admin user {admin.username}')
        else:
            print('Admin user already present')
        if seed_demo:
            if seed_demo_data(session):
                print('Demo teacher, course and student created')
            else:
                print('Demo data already present')
    print("Database ready.")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--seed-demo', action='store_true', help='Create the demo teacher/course/student')
    parser.add_argument('--reset', action='store_true', help='Drop all tables before creating them')
    args = parser.parse_args()
    main(seed_demo=args.seed_demo, reset=args.reset)
