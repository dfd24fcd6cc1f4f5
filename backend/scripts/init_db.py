#!/usr/bin/env python3
"""
Create the storefront schema
============================

Creates every table declared in storefront.models that does not exist
yet. Existing tables are left untouched.

Usage:
    DATABASE_URL=postgresql://... python3 scripts/init_db.py
"""
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BACKEND_DIR / '.env')

if not os.getenv('DATABASE_URL'):
    print("❌ DATABASE_URL environment variable is required")
    sys.exit(1)

from storefront.core.database import Base, init_schema  # noqa: E402


def main():
    print("🔧 Creating storefront schema...")
    init_schema()
    for table in sorted(Base.metadata.tables):
        print(f"  ✅ {table}")
    print("Done.")


if __name__ == "__main__":
    main()
