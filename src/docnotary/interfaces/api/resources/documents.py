"""Document API resources."""

import falcon.asgi

from docnotary.application.dto.document_dto import DocumentListItem, DocumentPutInput
from docnotary.application.use_cases.document.get_document import GetDocumentUseCase
from docnotary.application.use_cases.document.list_documents import ListDocumentsUseCase
from docnotary.application.use_cases.document.put_document import PutDocumentUseCase
from docnotary.domain.exceptions import NotFound, StorageUnavailable, ValidationError
from docnotary.domain.value_objects import ContentIdentifier
from docnotary.interfaces.api.resources.common import (
    UploadError,
    read_upload,
    set_unavailable,
)


def _list_item_to_dict(item: DocumentListItem) -> dict:
    return {
        "file_name": item.file_name,
        "content_identifier": item.content_identifier.to_hex(),
        "stored_at": item.stored_at.isoformat(),
    }


class DocumentsResource:
    """POST /v1/documents - store a file; GET /v1/documents - list caller's files."""

    def __init__(
        self,
        put_document: PutDocumentUseCase,
        list_documents: ListDocumentsUseCase,
        max_bytes: int,
    ) -> None:
        self._put_document = put_document
        self._list_documents = list_documents
        self._max_bytes = max_bytes

    async def on_post(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """Store multipart field ``document``. 201 when new, 200 when already stored."""
        user = getattr(req.context, "user", None)
        if not user:
            resp.status = falcon.HTTP_401
            resp.media = {"error": "Unauthorized"}
            return

        try:
            upload = await read_upload(req, self._max_bytes)
        except UploadError as e:
            resp.status = e.status
            resp.media = {"error": str(e)}
            return

        try:
            result = await self._put_document.execute(
                DocumentPutInput(
                    data=upload.data,
                    mime_type=upload.mime_type,
                    file_name=upload.file_name,
                    owner=user.user_id,
                )
            )
        except ValidationError as e:
            resp.status = falcon.HTTP_400
            resp.media = {"error": str(e)}
            return
        except StorageUnavailable as e:
            set_unavailable(resp, e)
            return

        resp.media = {
            "content_identifier": result.content_identifier.to_hex(),
            "created": result.created,
            "stored_at": result.stored_at.isoformat(),
        }
        resp.status = falcon.HTTP_201 if result.created else falcon.HTTP_200

    async def on_get(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
        """List documents stored by the caller."""
        user = getattr(req.context, "user", None)
        if not user:
            resp.status = falcon.HTTP_401
            resp.media = {"error": "Unauthorized"}
            return
        try:
            items = await self._list_documents.execute(user.user_id)
        except StorageUnavailable as e:
            set_unavailable(resp, e)
            return
        resp.media = {"items": [_list_item_to_dict(i) for i in items]}
        resp.status = falcon.HTTP_200


class DocumentResource:
    """GET /v1/documents/{content_identifier} - download stored bytes."""

    def __init__(self, get_document: GetDocumentUseCase) -> None:
        self._get_document = get_document

    async def on_get(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, content_identifier: str
    ) -> None:
        user = getattr(req.context, "user", None)
        if not user:
            resp.status = falcon.HTTP_401
            resp.media = {"error": "Unauthorized"}
            return
        try:
            identifier = ContentIdentifier.from_hex(content_identifier)
        except ValueError as e:
            resp.status = falcon.HTTP_400
            resp.media = {"error": str(e)}
            return
        try:
            document = await self._get_document.execute(identifier)
        except NotFound:
            resp.status = falcon.HTTP_404
            resp.media = {"error": "Document not found"}
            return
        except StorageUnavailable as e:
            set_unavailable(resp, e)
            return

        resp.data = document.data
        resp.content_type = document.mime_type
        resp.downloadable_as = document.file_name
        resp.set_header("X-Content-Identifier", document.content_identifier.to_hex())
        resp.status = falcon.HTTP_200
