"""
Migration: Add Billing Columns to Accounts Table

Databases created before billing launched have an accounts table without
the tier limit and Stripe columns. This adds:
- deck_limit / flashcard_limit_per_deck: limits mirrored from the tier (-1 = unlimited)
- stripe_customer_id / stripe_subscription_id: Stripe object ids
- subscription_status: Stripe subscription status ("active", "past_due", "canceled", ...)
- subscription_expires_at: end of the current billing period

Safe to run multiple times - checks if columns exist first.
"""

import sys
from pathlib import Path

# Add backend directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import text, inspect
from sqlalchemy.engine import Engine

# SQLite doesn't support NOT NULL without a default in ALTER TABLE
COLUMNS_TO_ADD = [
    ("subscription_tier", "VARCHAR DEFAULT 'free'"),
    ("deck_limit", "INTEGER DEFAULT 3"),
    ("flashcard_limit_per_deck", "INTEGER DEFAULT 50"),
    ("stripe_customer_id", "VARCHAR"),
    ("stripe_subscription_id", "VARCHAR"),
    ("subscription_status", "VARCHAR"),
    ("subscription_expires_at", "TIMESTAMP"),
]

INDEXES_TO_ADD = [
    ("ix_accounts_stripe_customer_id", "stripe_customer_id"),
    ("ix_accounts_stripe_subscription_id", "stripe_subscription_id"),
]


def get_existing_columns(engine: Engine, table_name: str) -> set:
    """Get set of existing column names for a table."""
    inspector = inspect(engine)
    return {col['name'] for col in inspector.get_columns(table_name)}


def add_column_if_not_exists(engine: Engine, table: str, column: str, column_def: str) -> bool:
    """Add a column if it doesn't already exist."""
    if column in get_existing_columns(engine, table):
        print(f"  ✓ Column '{column}' already exists, skipping")
        return False

    with engine.connect() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {column_def}"))
        conn.commit()

    print(f"  + Added column '{column}'")
    return True


def add_index_if_not_exists(engine: Engine, table: str, index_name: str, column: str) -> bool:
    existing = {index['name'] for index in inspect(engine).get_indexes(table)}
    if index_name in existing:
        return False

    with engine.connect() as conn:
        conn.execute(text(f"CREATE INDEX {index_name} ON {table} ({column})"))
        conn.commit()

    print(f"  + Added index '{index_name}'")
    return True


def migrate(engine: Engine = None) -> bool:
    """Add billing columns to the accounts table."""
    if engine is None:
        from neuroleaf.database import engine

    print("=" * 80)
    print("Neuroleaf - Add Billing Columns Migration")
    print("=" * 80)
    print()

    inspector = inspect(engine)
    if 'accounts' not in inspector.get_table_names():
        print("ERROR: 'accounts' table does not exist!")
        print("Start the API once to create the schema.")
        return False

    print("Adding billing columns to 'accounts' table...")
    print()

    added_count = 0
    for column_name, column_def in COLUMNS_TO_ADD:
        if add_column_if_not_exists(engine, "accounts", column_name, column_def):
            added_count += 1

    for index_name, column in INDEXES_TO_ADD:
        add_index_if_not_exists(engine, "accounts", index_name, column)

    # Paid accounts that predate the limit columns get unlimited limits
    with engine.connect() as conn:
        conn.execute(text(
            "UPDATE accounts SET deck_limit = -1, flashcard_limit_per_deck = -1 "
            "WHERE subscription_tier IN ('pro', 'premium')"
        ))
        conn.commit()

    print()
    if added_count > 0:
        print(f"✓ Added {added_count} new column(s)")
    else:
        print("✓ All columns already exist, nothing to do")

    print()
    print("=" * 80)
    print("Migration complete!")
    print("=" * 80)

    return True


if __name__ == "__main__":
    migrate()
