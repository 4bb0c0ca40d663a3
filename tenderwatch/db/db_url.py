"""Database URL resolution utilities."""
from pathlib import Path


def resolve_db_url(db_url: str) -> str:
    """
    Resolve relative SQLite database URLs to absolute paths.
    sqlite:///./dev.db is anchored at the project root; other URLs are returned unchanged.
    """
    if not db_url.startswith("sqlite"):
        return db_url

    if ":///./" in db_url:
        prefix, relative_path = db_url.split(":///./", 1)
        project_root = Path(__file__).resolve().parent.parent.parent
        absolute_path = (project_root / relative_path).resolve()
        return f"{prefix}:///{absolute_path.as_posix()}"

    return db_url
