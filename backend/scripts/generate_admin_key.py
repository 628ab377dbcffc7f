#!/usr/bin/env python3
"""Print a staff API key (JWT with the ``admin:all`` scope).

Example:
  python backend/scripts/generate_admin_key.py
"""

from __future__ import annotations

import os
import sys

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.security import create_admin_token


def main() -> int:
    token = create_admin_token()
    print("Authorization: Bearer <key>")
    print()
    print(token)
    print()
    print('curl -H "Authorization: Bearer <key>" http://localhost:8000/api/admin/teams')
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
