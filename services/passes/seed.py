# ============================================================
# seed.py — Création d'un compte en ligne de commande
# ------------------------------------------------------------
#   python seed.py --email admin@example.com --password ... --role admin
# Crée les tables si besoin, puis l'utilisateur.
# ============================================================
import argparse
import sys

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from database import init_db
from logger import setup_logging
from models import ROLE_EMPLOYEE, ROLES
from users import create_user


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create a Passes Service user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--role", choices=ROLES, default=ROLE_EMPLOYEE)
    args = parser.parse_args(argv)

    setup_logging()
    engine = init_db()
    with Session(engine) as s:
        try:
            u = create_user(s, args.email, args.password, args.role)
        except IntegrityError:
            print(f"[seed] {args.email} already exists", file=sys.stderr)
            return 1
    print(f"[seed] created user id={u.id} email={u.email} role={u.role}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
