"""Issue a bearer token for local testing of the admin API.

Usage: python scripts/issue_token.py <user_id> <role> [hours]
"""

import sys
from datetime import timedelta
from pathlib import Path

# Add the parent directory to Python path
sys.path.append(str(Path(__file__).parent.parent))

from statportal.config import load_settings
from statportal.core.access import ROLE_PERMISSIONS
from statportal.security.auth import create_token


def main(argv):
    if len(argv) < 3:
        print(__doc__)
        return 2

    user_id, role = argv[1], argv[2]
    hours = int(argv[3]) if len(argv) > 3 else 24
    if role not in ROLE_PERMISSIONS:
        print(f"Unknown role '{role}'. Known roles: {', '.join(sorted(ROLE_PERMISSIONS))}")
        return 2

    settings = load_settings()
    if not settings.get("JWT_SECRET_KEY"):
        print("JWT_SECRET_KEY is not set")
        return 1

    print(create_token(user_id, role, settings["JWT_SECRET_KEY"], settings.get("JWT_ALGORITHM", "HS256"),
                       expires_delta=timedelta(hours=hours)))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
