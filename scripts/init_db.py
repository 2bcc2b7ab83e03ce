"""
Create all tables from the SQLAlchemy models (no data).

Run with: python -m scripts.init_db
"""

from app.db.database import Base, engine
import app.db.models  # noqa: F401  registers every table on Base.metadata


def main():
    Base.metadata.create_all(bind=engine)
    print(f"Created tables: {', '.join(sorted(Base.metadata.tables))}")


if __name__ == "__main__":
    main()
