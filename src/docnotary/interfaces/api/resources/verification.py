"""Verification API resource."""

import falcon.asgi

from docnotary.application.use_cases.verification.verify_document import VerifyDocumentUseCase
from docnotary.domain.exceptions import LedgerUnavailable, UnknownRecord
from docnotary.interfaces.api.resources.common import UploadError, read_upload, set_unavailable
from docnotary.interfaces.api.resources.records import record_to_dict


class VerificationResource:
    """POST /v1/records/{record_id}/verify - compare a file against a notarized record.

    Accepts multipart field ``document`` or the raw file as the body. A
    mismatch is a 200 with ``matched: false``; an unknown record is a 404.
    """

    def __init__(self, verify_document: VerifyDocumentUseCase, max_bytes: int) -> None:
        self._verify_document = verify_document
        self._max_bytes = max_bytes

    async def on_post(
        self, req: falcon.asgi.Request, resp: falcon.asgi.Response, record_id: int
    ) -> None:
        try:
            upload = await read_upload(req, self._max_bytes, allow_raw=True)
        except UploadError as e:
            resp.status = e.status
            resp.media = {"error": str(e)}
            return

        try:
            result = await self._verify_document.execute(record_id, upload.data)
        except UnknownRecord as e:
            resp.status = falcon.HTTP_404
            resp.media = {"error": str(e)}
            return
        except LedgerUnavailable as e:
            set_unavailable(resp, e)
            return

        resp.media = {
            "matched": result.matched,
            "expected_identifier": result.expected_identifier.to_hex(),
            "supplied_identifier": result.supplied_identifier.to_hex(),
            "record": record_to_dict(result.record),
        }
        resp.status = falcon.HTTP_200
