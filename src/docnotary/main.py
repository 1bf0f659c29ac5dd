"""Application entry point and composition root."""

import logging

import falcon

from docnotary import __version__
from docnotary.application.services.ledger_indexer import LedgerIndexer
from docnotary.application.use_cases.document.get_document import GetDocumentUseCase
from docnotary.application.use_cases.document.list_documents import ListDocumentsUseCase
from docnotary.application.use_cases.document.put_document import PutDocumentUseCase
from docnotary.application.use_cases.notarization.notarize_document import (
    NotarizeDocumentUseCase,
)
from docnotary.application.use_cases.verification.verify_document import VerifyDocumentUseCase
from docnotary.config import Settings, get_settings
from docnotary.infrastructure.auth.keycloak_provider import KeycloakProvider
from docnotary.infrastructure.ledger import InMemoryLedger, PostgresLedger
from docnotary.infrastructure.persistence.postgres.connection import create_pool
from docnotary.infrastructure.persistence.postgres.unit_of_work import create_uow_factory
from docnotary.interfaces.api.app import create_app
from docnotary.interfaces.api.middleware.auth import AuthMiddleware
from docnotary.interfaces.api.middleware.cors import CORSMiddleware
from docnotary.interfaces.api.middleware.lifespan import LifespanMiddleware
from docnotary.interfaces.api.resources.documents import DocumentResource, DocumentsResource
from docnotary.interfaces.api.resources.health import HealthResource
from docnotary.interfaces.api.resources.notarizations import NotarizationsResource
from docnotary.interfaces.api.resources.records import (
    InboxResource,
    RecordResource,
    RecordsResource,
)
from docnotary.interfaces.api.resources.verification import VerificationResource

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    """Root logging setup, once per process."""
    level = "DEBUG" if settings.debug else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_docnotary_app():
    """Composition root - build Falcon app with all dependencies."""
    settings = get_settings()
    configure_logging(settings)
    logger.info("docnotary v%s (%s)", __version__, settings.environment)

    pool = create_pool(settings.database_url)
    pools = [pool]
    uow_factory = create_uow_factory(pool)

    if settings.ledger_backend == "memory":
        ledger = InMemoryLedger()
    else:
        ledger_pool = (
            pool
            if settings.ledger_conninfo == settings.database_url
            else create_pool(settings.ledger_conninfo)
        )
        if ledger_pool is not pool:
            pools.append(ledger_pool)
        ledger = PostgresLedger(ledger_pool, settings.ledger_conninfo)

    indexer = LedgerIndexer(
        ledger,
        timeout=settings.ledger_timeout_seconds,
        page_size=settings.ledger_page_size,
        reconnect_delay=settings.ledger_reconnect_delay_seconds,
        max_reconnect_delay=settings.ledger_max_reconnect_delay_seconds,
    )

    keycloak = (
        KeycloakProvider(
            server_url=settings.keycloak_url,
            realm=settings.keycloak_realm,
            client_id=settings.keycloak_client_id,
            client_secret=settings.keycloak_client_secret,
        )
        if settings.keycloak_client_secret
        else None
    )

    put_document = PutDocumentUseCase(
        unit_of_work_factory=uow_factory,
        max_bytes=settings.max_document_bytes,
    )
    get_document = GetDocumentUseCase(unit_of_work_factory=uow_factory)
    list_documents = ListDocumentsUseCase(unit_of_work_factory=uow_factory)
    notarize_document = NotarizeDocumentUseCase(
        put_document=put_document,
        ledger=ledger,
        timeout=settings.ledger_timeout_seconds,
    )
    verify_document = VerifyDocumentUseCase(indexer)

    cors_origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app = create_app(
        documents_resource=DocumentsResource(
            put_document, list_documents, settings.max_document_bytes
        ),
        document_resource=DocumentResource(get_document),
        notarizations_resource=NotarizationsResource(
            notarize_document, settings.max_document_bytes
        ),
        records_resource=RecordsResource(indexer),
        record_resource=RecordResource(indexer),
        inbox_resource=InboxResource(indexer),
        verification_resource=VerificationResource(
            verify_document, settings.max_document_bytes
        ),
        health_resource=HealthResource(indexer),
        max_document_bytes=settings.max_document_bytes,
        middleware=[
            CORSMiddleware(cors_origins),
            LifespanMiddleware(
                pools,
                ledger,
                indexer,
                retry_delay=settings.ledger_reconnect_delay_seconds,
                max_retry_delay=settings.ledger_max_reconnect_delay_seconds,
            ),
            AuthMiddleware(keycloak),
        ],
    )

    async def log_exception(req, resp, ex, params):
        logger.error("Unhandled error on %s %s", req.method, req.path, exc_info=ex)
        resp.status = falcon.HTTP_500
        resp.media = {"title": "500 Internal Server Error"}

    app.add_error_handler(Exception, log_exception)
    return app


def main() -> None:
    """CLI entry point - run the API under uvicorn."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    uvicorn.run(
        "docnotary.main:create_docnotary_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        log_level=settings.log_level.lower(),
    )
