"""Falcon ASGI application."""

import falcon
import falcon.asgi
import falcon.media
from falcon.asgi import App

from docnotary.interfaces.api.resources.documents import DocumentResource, DocumentsResource
from docnotary.interfaces.api.resources.health import HealthResource
from docnotary.interfaces.api.resources.notarizations import NotarizationsResource
from docnotary.interfaces.api.resources.records import (
    InboxResource,
    RecordResource,
    RecordsResource,
)
from docnotary.interfaces.api.resources.verification import VerificationResource


def create_app(
    documents_resource: DocumentsResource,
    document_resource: DocumentResource,
    notarizations_resource: NotarizationsResource,
    records_resource: RecordsResource,
    record_resource: RecordResource,
    inbox_resource: InboxResource,
    verification_resource: VerificationResource,
    health_resource: HealthResource,
    max_document_bytes: int,
    middleware: list | None = None,
) -> App:
    """Create Falcon ASGI app with routes."""
    app = falcon.asgi.App(middleware=middleware or [])

    multipart = falcon.media.MultipartFormHandler()
    # default part buffer is 1 MiB; documents may be larger
    multipart.parse_options.max_body_part_buffer_size = max_document_bytes
    app.req_options.media_handlers[falcon.MEDIA_MULTIPART] = multipart

    app.add_route("/v1/health", health_resource)
    app.add_route("/v1/health/ready", health_resource, suffix="ready")
    app.add_route("/v1/documents", documents_resource)
    app.add_route("/v1/documents/{content_identifier}", document_resource)
    app.add_route("/v1/notarizations", notarizations_resource)
    app.add_route("/v1/records", records_resource)
    app.add_route("/v1/records/{record_id:int}", record_resource)
    app.add_route("/v1/records/{record_id:int}/verify", verification_resource)
    app.add_route("/v1/inbox/{address}", inbox_resource)
    return app
