"""Shared request helpers: multipart uploads and infrastructure error responses."""

import re
from dataclasses import dataclass, field
from urllib.parse import unquote_to_bytes

import falcon
import falcon.asgi

from docnotary.domain.exceptions import NotaryError

# RFC 5987: filename*=charset''percent-encoded (two single quotes)
_FILENAME_STAR_RFC5987 = re.compile(r"([\w-]+)''(.+)")

RETRY_AFTER_SECONDS = "5"


def _decode_filename(raw: str | None) -> str:
    """Decode filename to UTF-8, fixing mojibake when UTF-8 bytes were read as Latin-1."""
    if not raw or not raw.strip():
        return ""
    raw = raw.strip()
    try:
        return raw.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return raw


def _parse_filename_star_from_header(raw_header_value: bytes) -> str | None:
    """Parse Content-Disposition raw value for filename*=charset''percent-encoded (RFC 5987)."""
    if not raw_header_value:
        return None
    decoded = raw_header_value.decode("utf-8", errors="replace")
    idx = decoded.find("filename*=")
    if idx == -1:
        return None
    rest = decoded[idx + len("filename*=") :].strip()
    match = _FILENAME_STAR_RFC5987.match(rest)
    if not match:
        return None
    charset, encoded = match.groups()
    try:
        return unquote_to_bytes(encoded).decode(charset)
    except (ValueError, LookupError):
        return None


def _get_part_filename(part: object, fallback: str) -> str:
    """Filename of a multipart part: part.filename, else filename* from raw headers, else fallback."""
    raw = (getattr(part, "filename", None) or "").strip()
    if not raw:
        headers = getattr(part, "_headers", None)
        if isinstance(headers, dict):
            raw_star = _parse_filename_star_from_header(headers.get(b"content-disposition", b""))
            if raw_star:
                raw = raw_star.strip()
    decoded = _decode_filename(raw) if raw else ""
    return decoded or fallback


@dataclass
class Upload:
    """File received in a request."""

    data: bytes
    file_name: str
    mime_type: str
    fields: dict[str, str] = field(default_factory=dict)


class UploadError(Exception):
    """Request body is not an acceptable upload."""

    def __init__(self, status: str, message: str) -> None:
        super().__init__(message)
        self.status = status


def _check_size(size: int | None, max_bytes: int) -> None:
    if size is not None and size > max_bytes:
        raise UploadError(falcon.HTTP_413, f"Document exceeds {max_bytes} bytes")


async def read_upload(
    req: falcon.asgi.Request,
    max_bytes: int,
    file_field: str = "document",
    allow_raw: bool = False,
) -> Upload:
    """Read a multipart upload (file in ``file_field`` plus text fields).

    With ``allow_raw`` a non-multipart body is taken as the file itself.
    """
    _check_size(req.content_length, max_bytes)
    content_type = req.content_type or ""
    if "multipart/form-data" not in content_type:
        if not allow_raw:
            raise UploadError(falcon.HTTP_415, "multipart/form-data required")
        data = await req.stream.read()
        _check_size(len(data), max_bytes)
        return Upload(
            data=data,
            file_name=req.get_param("file_name") or "document",
            mime_type=content_type or "application/octet-stream",
        )

    upload: Upload | None = None
    fields: dict[str, str] = {}
    try:
        form = await req.get_media()
        async for part in form:
            name = part.name or ""
            if name == file_field:
                data = bytes(await part.get_data())
                _check_size(len(data), max_bytes)
                upload = Upload(
                    data=data,
                    file_name=_get_part_filename(part, fallback="document"),
                    mime_type=part.content_type or "application/octet-stream",
                )
            else:
                fields[name] = (await part.get_text() or "").strip()
    except falcon.MediaMalformedError as e:
        raise UploadError(falcon.HTTP_400, f"Invalid multipart: {e}") from e
    if upload is None:
        raise UploadError(falcon.HTTP_400, f"Missing file field '{file_field}'")
    upload.fields = fields
    return upload


def set_unavailable(resp: falcon.asgi.Response, error: NotaryError) -> None:
    """503 for transient infrastructure failures; the caller should retry."""
    resp.status = falcon.HTTP_503
    resp.set_header("Retry-After", RETRY_AFTER_SECONDS)
    resp.media = {"error": str(error)}
