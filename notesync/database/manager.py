"""
Database manager for notesync.

This module handles the note store the merge resolver writes to, using DuckDB.
Two tables hold the notes: a global note table looked up by slug, and a join
table recording which user keeps which note and whether it still exists in the
user's vault.
"""

import duckdb
import json
import logging
import uuid
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional
from datetime import datetime

from ..models import OutgoingLink, SourceCategory, StoredNote, UserSource


NOTE_COLUMNS = """
    source_id, slug, title, content, description, headings, internal_links,
    banner_image, source_type, source_category, owner_key, created_by,
    access_to, ext_owner, published, ctime, mtime
"""


class DatabaseManager:
    """
    Manages the DuckDB note store.
    """

    def __init__(self, db_path: str = "notesync.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the DuckDB database file, or ':memory:'
        """
        self.db_path = db_path
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        connection = self._require_connection()

        connection.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id VARCHAR PRIMARY KEY,
                owner_key VARCHAR NOT NULL,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Slugs are unique by construction (owner id prefix), looked up not constrained
        connection.execute("""
            CREATE TABLE IF NOT EXISTS global_sources (
                source_id VARCHAR PRIMARY KEY,
                slug VARCHAR NOT NULL,
                title VARCHAR NOT NULL,
                content TEXT,
                description VARCHAR,
                headings TEXT,
                internal_links TEXT,
                banner_image VARCHAR,
                source_type VARCHAR,
                source_category TEXT,
                owner_key VARCHAR,
                created_by VARCHAR,
                access_to TEXT,
                ext_owner VARCHAR,
                published BOOLEAN DEFAULT false,
                ctime TIMESTAMP,
                mtime TIMESTAMP
            )
        """)

        connection.execute("""
            CREATE TABLE IF NOT EXISTS user_sources (
                source_id VARCHAR NOT NULL,
                saved_by VARCHAR NOT NULL,
                owner_key VARCHAR,
                in_local BOOLEAN DEFAULT true,
                date_added TIMESTAMP,
                review_state INTEGER DEFAULT 1,
                last_review_date TIMESTAMP,
                PRIMARY KEY (source_id, saved_by)
            )
        """)

    @contextmanager
    def transaction(self):
        """
        Run a block of statements atomically; roll back if it raises.
        """
        connection = self._require_connection()
        connection.begin()
        try:
            yield self
        except Exception:
            connection.rollback()
            raise
        connection.commit()

    def ensure_user(self, user_id: str) -> str:
        """
        Return the owner key of a user, registering the user if needed.

        Args:
            user_id: External id of the user

        Returns:
            The user's internal owner key
        """
        connection = self._require_connection()

        result = connection.execute(
            "SELECT owner_key FROM users WHERE user_id = ?", [user_id]
        ).fetchone()
        if result:
            return result[0]

        owner_key = uuid.uuid4().hex
        connection.execute(
            "INSERT INTO users (user_id, owner_key, created_at) VALUES (?, ?, ?)",
            [user_id, owner_key, datetime.now()]
        )
        logging.info(f"Registered user {user_id}")
        return owner_key

    def find_note_by_slug(self, slug: str, created_by: Optional[str] = None) -> Optional[StoredNote]:
        """
        Retrieve a note by slug.

        Args:
            slug: The note slug
            created_by: Only match notes created by this user

        Returns:
            The stored note if found, None otherwise
        """
        connection = self._require_connection()

        query = f"SELECT {NOTE_COLUMNS} FROM global_sources WHERE slug = ?"
        params = [slug]
        if created_by is not None:
            query += " AND created_by = ?"
            params.append(created_by)

        result = connection.execute(query, params).fetchone()
        return self._row_to_note(result) if result else None

    def find_ids_by_slugs(self, slugs: Iterable[str]) -> Dict[str, str]:
        """
        Map slugs to the ids of the stored notes carrying them.

        Args:
            slugs: Slugs to look up

        Returns:
            Dictionary of slug to source id for the slugs that exist
        """
        connection = self._require_connection()

        slugs = list(dict.fromkeys(slugs))
        if not slugs:
            return {}

        placeholders = ", ".join("?" for _ in slugs)
        results = connection.execute(
            f"SELECT slug, source_id FROM global_sources WHERE slug IN ({placeholders})",
            slugs
        ).fetchall()

        return {row[0]: row[1] for row in results}

    def insert_note(self, note: StoredNote) -> str:
        """
        Insert a new note.

        Args:
            note: The note to insert; a source id is generated when missing

        Returns:
            The source id of the inserted note
        """
        connection = self._require_connection()

        source_id = note.source_id or uuid.uuid4().hex
        connection.execute(f"""
            INSERT INTO global_sources ({NOTE_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, [source_id] + self._note_values(note))

        return source_id

    def update_note(self, note: StoredNote) -> bool:
        """
        Overwrite the stored note with the same slug.

        The source id and creation time of the stored note are kept.

        Args:
            note: Note carrying the new field values

        Returns:
            True if a note was updated
        """
        connection = self._require_connection()

        values = self._note_values(note)
        # ctime is preserved from the stored record
        ctime_index = 14
        del values[ctime_index]

        result = connection.execute("""
            UPDATE global_sources SET
                slug = ?, title = ?, content = ?, description = ?, headings = ?,
                internal_links = ?, banner_image = ?, source_type = ?,
                source_category = ?, owner_key = ?, created_by = ?, access_to = ?,
                ext_owner = ?, published = ?, mtime = ?
            WHERE slug = ?
            RETURNING source_id
        """, values + [note.slug]).fetchall()

        return len(result) > 0

    def add_user_source(self, source: UserSource) -> bool:
        """
        Record that a user keeps a note.

        Returns:
            True if the record was added, False if it already existed
        """
        connection = self._require_connection()

        try:
            connection.execute("""
                INSERT INTO user_sources (
                    source_id, saved_by, owner_key, in_local, date_added,
                    review_state, last_review_date
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, [
                source.source_id,
                source.saved_by,
                source.owner,
                source.in_local,
                source.date_added or datetime.now(),
                source.review_state,
                source.last_review_date or datetime.now()
            ])
            return True
        except duckdb.IntegrityError:
            # Record already exists
            return False

    def get_user_source(self, source_id: str, user_id: str) -> Optional[UserSource]:
        connection = self._require_connection()

        result = connection.execute("""
            SELECT source_id, saved_by, owner_key, in_local, date_added,
                   review_state, last_review_date
            FROM user_sources
            WHERE source_id = ? AND saved_by = ?
        """, [source_id, user_id]).fetchone()

        if result:
            return UserSource(
                source_id=result[0],
                saved_by=result[1],
                owner=result[2],
                in_local=result[3],
                date_added=result[4],
                review_state=result[5],
                last_review_date=result[6]
            )
        return None

    def set_in_local(self, source_id: str, user_id: str, in_local: bool = True) -> None:
        """Set the soft-delete flag of a user's note record."""
        connection = self._require_connection()

        connection.execute("""
            UPDATE user_sources SET in_local = ?
            WHERE source_id = ? AND saved_by = ?
        """, [in_local, source_id, user_id])

    def list_notes(self, created_by: Optional[str] = None) -> List[StoredNote]:
        """
        List all stored notes, optionally filtered by creator.
        """
        connection = self._require_connection()

        if created_by:
            results = connection.execute(f"""
                SELECT {NOTE_COLUMNS} FROM global_sources
                WHERE created_by = ?
                ORDER BY slug
            """, [created_by]).fetchall()
        else:
            results = connection.execute(f"""
                SELECT {NOTE_COLUMNS} FROM global_sources
                ORDER BY slug
            """).fetchall()

        return [self._row_to_note(row) for row in results]

    @staticmethod
    def _note_values(note: StoredNote) -> list:
        """Column values of a note, in NOTE_COLUMNS order without source_id."""
        return [
            note.slug,
            note.title,
            note.content,
            note.description,
            json.dumps(note.headings),
            json.dumps([link.model_dump() for link in note.internal_links]),
            note.banner_image,
            note.source_type,
            note.source_category.model_dump_json(),
            note.owner,
            note.created_by,
            json.dumps(note.access_to),
            note.ext_owner,
            note.published,
            note.ctime,
            note.mtime
        ]

    @staticmethod
    def _row_to_note(row) -> StoredNote:
        return StoredNote(
            source_id=row[0],
            slug=row[1],
            title=row[2],
            content=row[3] or "",
            description=row[4] or "",
            headings=json.loads(row[5] or "[]"),
            internal_links=[OutgoingLink(**link) for link in json.loads(row[6] or "[]")],
            banner_image=row[7],
            source_type=row[8] or "",
            source_category=SourceCategory.model_validate_json(row[9]) if row[9] else SourceCategory(),
            owner=row[10],
            created_by=row[11],
            access_to=json.loads(row[12] or "[]"),
            ext_owner=row[13],
            published=bool(row[14]),
            ctime=row[15],
            mtime=row[16]
        )
