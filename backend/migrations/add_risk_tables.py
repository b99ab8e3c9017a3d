"""
Migration: Add owner risk pipeline tables.

Creates 3 tables:
1. suspicious_events - append-only owner fraud signals
2. property_views - property detail impressions
3. owner_risk - current risk snapshot per owner

Adds penalty columns to properties:
- ranking_penalty_level
- featured_eligible
"""
from sqlalchemy import create_engine, text
import os

# Use same DB URL pattern as main app
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/findnearpg"
)


def table_exists(conn, table_name: str) -> bool:
    """Check if a table exists in the database."""
    result = conn.execute(text("""
        SELECT EXISTS (
            SELECT FROM information_schema.tables
            WHERE table_name = :table_name
        )
    """), {"table_name": table_name})
    return result.fetchone()[0]


def column_exists(conn, table_name: str, column_name: str) -> bool:
    """Check if a column exists on a table."""
    result = conn.execute(text("""
        SELECT EXISTS (
            SELECT FROM information_schema.columns
            WHERE table_name = :table_name AND column_name = :column_name
        )
    """), {"table_name": table_name, "column_name": column_name})
    return result.fetchone()[0]


def run_migration():
    """Create risk tables and property penalty columns."""
    engine = create_engine(DATABASE_URL)

    with engine.connect() as conn:
        # =================================================================
        # TABLE 1: suspicious_events
        # =================================================================
        if table_exists(conn, "suspicious_events"):
            print("suspicious_events table already exists")
            conn.execute(text("""
                ALTER TABLE suspicious_events ALTER COLUMN event_type TYPE TEXT
            """))
            print("Widened suspicious_events.event_type to TEXT")
        else:
            conn.execute(text("""
                CREATE TABLE suspicious_events (
                    id SERIAL PRIMARY KEY,
                    event_type TEXT NOT NULL,
                    owner_id INTEGER NOT NULL,
                    user_id INTEGER,
                    property_id INTEGER,
                    severity INTEGER NOT NULL DEFAULT 1,
                    details JSON,
                    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX idx_suspicious_owner_created ON suspicious_events(owner_id, created_at)
            """))
            conn.execute(text("""
                CREATE INDEX idx_suspicious_created ON suspicious_events(created_at)
            """))
            print("Created suspicious_events table")

        # =================================================================
        # TABLE 2: property_views
        # =================================================================
        if table_exists(conn, "property_views"):
            print("property_views table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE property_views (
                    id SERIAL PRIMARY KEY,
                    property_id INTEGER NOT NULL,
                    owner_id INTEGER NOT NULL,
                    user_id INTEGER,
                    created_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX idx_views_property_created ON property_views(property_id, created_at)
            """))
            print("Created property_views table")

        # =================================================================
        # TABLE 3: owner_risk
        # =================================================================
        if table_exists(conn, "owner_risk"):
            print("owner_risk table already exists")
        else:
            conn.execute(text("""
                CREATE TABLE owner_risk (
                    owner_id INTEGER PRIMARY KEY,
                    risk_score INTEGER NOT NULL DEFAULT 0,
                    risk_level VARCHAR(20) NOT NULL DEFAULT 'normal',
                    metrics JSON NOT NULL,
                    penalties JSON NOT NULL,
                    updated_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """))
            conn.execute(text("""
                CREATE INDEX idx_owner_risk_score ON owner_risk(risk_score DESC, updated_at DESC)
            """))
            print("Created owner_risk table")

        # =================================================================
        # PROPERTIES: penalty columns
        # =================================================================
        if column_exists(conn, "properties", "ranking_penalty_level"):
            print("properties.ranking_penalty_level already exists")
        else:
            conn.execute(text("""
                ALTER TABLE properties
                ADD COLUMN ranking_penalty_level VARCHAR(20) NOT NULL DEFAULT 'none'
            """))
            print("Added properties.ranking_penalty_level")

        if column_exists(conn, "properties", "featured_eligible"):
            print("properties.featured_eligible already exists")
        else:
            conn.execute(text("""
                ALTER TABLE properties
                ADD COLUMN featured_eligible BOOLEAN NOT NULL DEFAULT TRUE
            """))
            print("Added properties.featured_eligible")

        conn.commit()
        print("\nMigration complete!")


if __name__ == "__main__":
    run_migration()
