from __future__ import annotations

import sys

from sqlalchemy import text

from timeflow.db import db_session, engine


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: python -m timeflow.tools.reset_account <username>")
        raise SystemExit(2)

    username = sys.argv[1].strip().lower()
    if not username:
        print("Invalid username.")
        raise SystemExit(2)

    with db_session() as s:
        s.execute(text("DELETE FROM accounts WHERE username = :u"), {"u": username})

    print(f"DB: {engine.url.database}")
    print(f"OK: account '{username}' deleted (if it existed).")


if __name__ == "__main__":
    main()
