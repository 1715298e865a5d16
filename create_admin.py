"""
Script to grant admin rights to an existing account
Usage: python create_admin.py user@example.com
"""
import sys

from app import create_app
from models import db
from models.user import User


def promote_to_admin(email):
    """Mark the user with this email as an active admin; returns the user or None"""
    user = User.query.filter(User.email.ilike(email.strip())).first()
    if not user:
        return None
    user.is_admin = True
    user.is_active = True
    db.session.commit()
    return user


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    if len(argv) != 1:
        print("Usage: python create_admin.py <email>")
        return 2

    app = create_app()
    with app.app_context():
        user = promote_to_admin(argv[0])
        if not user:
            print(f"[ERROR] No account registered with {argv[0]}")
            return 1
        print(f"[SUCCESS] {user.username} ({user.email}) is now an admin.")
    return 0


if __name__ == '__main__':
    sys.exit(main())
