"""Notarization submission API resource."""

import falcon.asgi

from docnotary.application.dto.notarization_dto import NotarizationInput
from docnotary.application.use_cases.notarization.notarize_document import (
    NotarizeDocumentUseCase,
)
from docnotary.domain.exceptions import LedgerUnavailable, StorageUnavailable, ValidationError
from docnotary.interfaces.api.resources.common import UploadError, read_upload, set_unavailable


class NotarizationsResource:
    """POST /v1/notarizations - store a file and append its record to the ledger.

    Multipart fields: ``document`` (file), ``sender``, ``recipient`` and
    optional ``reference``. Responds 202: the record becomes queryable once
    the indexer has observed it.
    """

    def __init__(self, notarize_document: NotarizeDocumentUseCase, max_bytes: int) -> None:
        self._notarize_document = notarize_document
        self._max_bytes = max_bytes

    async def on_post(self, req: falcon.asgi.Request, resp: falcon.asgi.Response) -> None:
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
            result = await self._notarize_document.execute(
                NotarizationInput(
                    data=upload.data,
                    mime_type=upload.mime_type,
                    file_name=upload.file_name,
                    owner=user.user_id,
                    sender=upload.fields.get("sender", ""),
                    recipient=upload.fields.get("recipient", ""),
                    reference=upload.fields.get("reference", ""),
                )
            )
        except ValidationError as e:
            resp.status = falcon.HTTP_400
            resp.media = {"error": str(e)}
            return
        except (StorageUnavailable, LedgerUnavailable) as e:
            set_unavailable(resp, e)
            return

        resp.media = {
            "record_id": result.record_id,
            "content_identifier": result.content_identifier.to_hex(),
        }
        resp.status = falcon.HTTP_202
