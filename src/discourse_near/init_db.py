"""Create the linkage table for the configured database."""

from discourse_near.core.settings import get_settings
from discourse_near.db.session import create_session_factory


def init_db() -> None:
    """Initialize the database by creating all tables."""
    settings = get_settings()
    create_session_factory(settings.database_url, echo=settings.sql_debug)


if __name__ == "__main__":
    init_db()
    print("Database initialized.")
