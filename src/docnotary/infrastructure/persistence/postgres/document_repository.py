"""PostgreSQL stored document repository implementation."""

from psycopg import AsyncConnection

from docnotary.application.dto.document_dto import DocumentListItem
from docnotary.domain.entities import StoredDocument
from docnotary.domain.value_objects import ContentIdentifier

_COLUMNS = "content_identifier, data, mime_type, file_name, owner, stored_at"


def _row_to_document(r: tuple) -> StoredDocument:
    return StoredDocument(
        content_identifier=ContentIdentifier(bytes(r[0])),
        data=bytes(r[1]),
        mime_type=r[2],
        file_name=r[3],
        owner=r[4],
        stored_at=r[5],
    )


class PostgresDocumentRepository:
    """Stored document repository implementation."""

    def __init__(self, conn: AsyncConnection) -> None:
        self._conn = conn

    async def get_by_identifier(
        self, content_identifier: ContentIdentifier
    ) -> StoredDocument | None:
        """Get document by content identifier."""
        cur = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM stored_document WHERE content_identifier = %s",
            (content_identifier.value,),
        )
        r = await cur.fetchone()
        if not r:
            return None
        return _row_to_document(r)

    async def create_if_absent(self, document: StoredDocument) -> tuple[StoredDocument, bool]:
        """Insert document; on identifier conflict return the row already stored."""
        cur = await self._conn.execute(
            f"INSERT INTO stored_document ({_COLUMNS}) "
            "VALUES (%s, %s, %s, %s, %s, %s) "
            "ON CONFLICT (content_identifier) DO NOTHING "
            "RETURNING content_identifier",
            (
                document.content_identifier.value,
                document.data,
                document.mime_type,
                document.file_name,
                document.owner,
                document.stored_at,
            ),
        )
        if await cur.fetchone():
            return document, True
        existing = await self.get_by_identifier(document.content_identifier)
        if existing is None:
            raise RuntimeError(
                f"stored_document row {document.content_identifier} vanished after conflict"
            )
        return existing, False

    async def list_by_owner(self, owner: str) -> list[DocumentListItem]:
        """List owner's documents without loading their bytes."""
        cur = await self._conn.execute(
            "SELECT file_name, content_identifier, stored_at FROM stored_document "
            "WHERE owner = %s ORDER BY stored_at, content_identifier",
            (owner,),
        )
        rows = await cur.fetchall()
        return [
            DocumentListItem(
                file_name=r[0],
                content_identifier=ContentIdentifier(bytes(r[1])),
                stored_at=r[2],
            )
            for r in rows
        ]
