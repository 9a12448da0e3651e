"""
Issue an admin bearer token for the back office API.
Operators run this with the deployment's SECURITY__SECRET_KEY in the environment.
"""
import argparse
from datetime import timedelta

from backoffice.core.config import get_settings
from backoffice.core.security import ADMIN_ROLES, create_access_token


def issue_admin_token(admin_id: str, username: str, role: str, minutes: int | None) -> str:
    if role not in ADMIN_ROLES:
        raise SystemExit(f"role must be one of: {', '.join(sorted(ADMIN_ROLES))}")
    settings = get_settings()
    expires = timedelta(minutes=minutes or settings.access_token_expire_minutes)
    return create_access_token(admin_id, username, role, expires_delta=expires)


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue an admin bearer token")
    parser.add_argument("username")
    parser.add_argument("--admin-id", default=None, help="defaults to the username")
    parser.add_argument("--role", default="admin")
    parser.add_argument("--minutes", type=int, default=None)
    args = parser.parse_args()

    token = issue_admin_token(args.admin_id or args.username, args.username, args.role, args.minutes)
    print("=" * 50)
    print(f"Admin: {args.username} ({args.role})")
    print("=" * 50)
    print(token)


if __name__ == "__main__":
    main()
