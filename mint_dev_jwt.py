"""
Mint a bearer token for local testing of the API.

Usage:
    python mint_dev_jwt.py <user-uuid> [ADMIN|CLIENT] [hours]
"""
import sys
from datetime import datetime, timedelta, timezone

import jwt

from src.config import get_settings


def main() -> None:
    if len(sys.argv) < 2:
        sys.exit(__doc__)
    user_id = sys.argv[1]
    role = (sys.argv[2] if len(sys.argv) > 2 else "CLIENT").upper()
    hours = int(sys.argv[3]) if len(sys.argv) > 3 else 12

    settings = get_settings()
    now = datetime.now(timezone.utc)
    claims = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    print(jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM))


if __name__ == "__main__":
    main()
