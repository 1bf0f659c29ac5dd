"""Fixtures for API tests."""

import pytest
from falcon.testing import TestClient
from falcon.util.sync import async_to_sync

from docnotary.application.services.ledger_indexer import LedgerIndexer
from docnotary.application.use_cases.document.get_document import GetDocumentUseCase
from docnotary.application.use_cases.document.list_documents import ListDocumentsUseCase
from docnotary.application.use_cases.document.put_document import PutDocumentUseCase
from docnotary.application.use_cases.notarization.notarize_document import (
    NotarizeDocumentUseCase,
)
from docnotary.application.use_cases.verification.verify_document import VerifyDocumentUseCase
from docnotary.infrastructure.auth.keycloak_provider import OIDCUser
from docnotary.infrastructure.ledger import InMemoryLedger
from docnotary.interfaces.api.app import create_app
from docnotary.interfaces.api.middleware.auth import AuthMiddleware
from docnotary.interfaces.api.resources.documents import DocumentResource, DocumentsResource
from docnotary.interfaces.api.resources.health import HealthResource
from docnotary.interfaces.api.resources.notarizations import NotarizationsResource
from docnotary.interfaces.api.resources.records import (
    InboxResource,
    RecordResource,
    RecordsResource,
)
from docnotary.interfaces.api.resources.verification import VerificationResource

MAX_BYTES = 1024
VALID_TOKEN = "valid-token"


class FakeKeycloakProvider:
    """Accepts a single known token."""

    def decode_token(self, token: str) -> OIDCUser | None:
        if token == VALID_TOKEN:
            return OIDCUser(user_id="kc-user-1", email="u@example.com", username="u1")
        return None


def refresh_index(indexer: LedgerIndexer) -> None:
    """Replay the ledger into the indexer's snapshot, then stop following.

    Runs on the same loop runner the test client uses; between requests no
    loop is running, so the indexer is not left following the ledger.
    """

    async def _replay() -> None:
        await indexer.start()
        await indexer.stop()

    async_to_sync(_replay)


def multipart_body(
    data: bytes,
    fields: dict[str, str] | None = None,
    file_field: str = "document",
    file_name: str = "test.txt",
    boundary: str = "----TestBoundary",
) -> tuple[bytes, dict[str, str]]:
    body = b""
    for name, value in (fields or {}).items():
        body += (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{name}"\r\n\r\n'
            f"{value}\r\n"
        ).encode("utf-8")
    body += (
        f"--{boundary}\r\n"
        f'Content-Disposition: form-data; name="{file_field}"; filename="{file_name}"\r\n'
        "Content-Type: text/plain\r\n\r\n"
    ).encode("utf-8")
    body += data + f"\r\n--{boundary}--\r\n".encode("utf-8")
    return body, {"Content-Type": f"multipart/form-data; boundary={boundary}"}


@pytest.fixture
def api_ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def api_indexer(api_ledger: InMemoryLedger) -> LedgerIndexer:
    return LedgerIndexer(api_ledger, timeout=1.0, reconnect_delay=0.01)


@pytest.fixture
def app(uow_factory, api_ledger: InMemoryLedger, api_indexer: LedgerIndexer):
    """Falcon ASGI app wired to in-memory storage and ledger."""
    put_document = PutDocumentUseCase(unit_of_work_factory=uow_factory, max_bytes=MAX_BYTES)
    notarize_document = NotarizeDocumentUseCase(
        put_document=put_document, ledger=api_ledger, timeout=1.0
    )
    return create_app(
        documents_resource=DocumentsResource(
            put_document, ListDocumentsUseCase(unit_of_work_factory=uow_factory), MAX_BYTES
        ),
        document_resource=DocumentResource(GetDocumentUseCase(unit_of_work_factory=uow_factory)),
        notarizations_resource=NotarizationsResource(notarize_document, MAX_BYTES),
        records_resource=RecordsResource(api_indexer),
        record_resource=RecordResource(api_indexer),
        inbox_resource=InboxResource(api_indexer),
        verification_resource=VerificationResource(VerifyDocumentUseCase(api_indexer), MAX_BYTES),
        health_resource=HealthResource(api_indexer),
        max_document_bytes=MAX_BYTES,
        middleware=[AuthMiddleware(FakeKeycloakProvider())],
    )


@pytest.fixture
def client(app) -> TestClient:
    """Falcon ASGI test client."""
    return TestClient(app)
