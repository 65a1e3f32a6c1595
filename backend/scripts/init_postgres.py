"""
Check the PostgreSQL database for Social Wallet.
Run once before migrating: python scripts/init_postgres.py

Requires: PostgreSQL installed and running. Create user and database:

  sudo -u postgres psql
  CREATE USER social_wallet WITH PASSWORD 'social_wallet';
  CREATE DATABASE social_wallet OWNER social_wallet;
  GRANT ALL PRIVILEGES ON DATABASE social_wallet TO social_wallet;
  \q
"""

import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from social_wallet.config import settings


def main():
    url = settings.get_database_url()
    if not url.startswith("postgresql"):
        print("Database URL is not PostgreSQL. Skipping.")
        return
    try:
        engine = create_engine(url)
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("PostgreSQL connection OK. Database exists.")
    except SQLAlchemyError as e:
        print(f"Cannot connect to PostgreSQL: {e}")
        print("\nCreate database first:")
        print("  psql -U postgres -c \"CREATE USER social_wallet WITH PASSWORD 'social_wallet';\"")
        print("  psql -U postgres -c \"CREATE DATABASE social_wallet OWNER social_wallet;\"")
        print("  psql -U postgres -c \"GRANT ALL PRIVILEGES ON DATABASE social_wallet TO social_wallet;\"")
        sys.exit(1)


if __name__ == "__main__":
    main()
