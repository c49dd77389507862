"""CLI script to seed a demo admin and two groups into the backend DB.
Usage: python scripts/seed_demo.py [--email EMAIL] [--password PASSWORD]
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `studygroups` imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from studygroups.config import Settings
from studygroups.database import create_engine_for, create_db_and_tables
from studygroups import repositories, services

DEMO_GROUPS = [
    ('Open Study Hall', 'General', 'Anyone can join', True),
    ('Exam Prep', 'Computer Science', 'Invite only', False),
]


def main(email: str = 'demo@example.com', password: str = 'demo'):
    """Create (or reuse) a demo user and give them a public and a private group.

    Groups the user already belongs to are matched by name and reused, so
    running the script again adds nothing. Results are printed to stdout.
    """
    settings = Settings()
    engine = create_engine_for(settings)
    create_db_and_tables(engine)
    with Session(engine) as session:
        user = repositories.UserRepository(session).get_by_email(email)
        if user:
            print(f'Using existing user {email} (id={user.id})')
        else:
            user = services.AuthService(session, settings).register('Demo Admin', email, password)
            print(f'Created user {email} (id={user.id})')
        groups = services.GroupService(session)
        existing = {g.name: g.id for g in groups.group_repo.list_for_member(user.id)}
        for name, subject, description, is_public in DEMO_GROUPS:
            if name in existing:
                print(f'Using existing group {name!r} (id={existing[name]})')
                continue
            created = groups.create_group(user.id, name, subject, description, is_public=is_public)
            print(f"Created group {name!r} (id={created['id']}, public={is_public})")


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--email', default='demo@example.com', help='Demo admin email')
    parser.add_argument('--password', default='demo', help='Demo admin password')
    args = parser.parse_args()
    main(email=args.email, password=args.password)
