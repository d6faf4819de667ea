from newsvault.db.archives import (
    count_archives,
    get_archive_by_url,
    get_last,
    get_random_batch_except,
    get_random_except,
    insert_archives,
    list_urls,
)
from newsvault.db.connection import get_connection
from newsvault.db.migrations import init_db
from newsvault.db.models import ArchivedEntity
from newsvault.db.store import ArchiveStore

__all__ = [
    "ArchiveStore",
    "ArchivedEntity",
    "count_archives",
    "get_archive_by_url",
    "get_connection",
    "get_last",
    "get_random_batch_except",
    "get_random_except",
    "init_db",
    "insert_archives",
    "list_urls",
]
