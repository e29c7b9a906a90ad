# init_db.py (in backend folder)

from sqlalchemy import inspect

from pbvault.config import load_settings
from pbvault.infra.database import PasteStore
from pbvault.models.base import Base


def init_db(drop: bool = False):
    """Create the pastes table, optionally dropping it first"""
    store = PasteStore.from_settings(load_settings()).connect()
    try:
        if drop:
            print("Dropping all tables...")
            Base.metadata.drop_all(bind=store.engine)
            Base.metadata.create_all(bind=store.engine)
        print("Database initialized successfully!")

        inspector = inspect(store.engine)
        for table in inspector.get_table_names():
            print(f"\n{table}:")
            for col in inspector.get_columns(table):
                print(f"  - {col['name']}: {col['type']}")
    finally:
        store.close()


if __name__ == "__main__":
    import sys

    init_db(drop="--drop" in sys.argv)
