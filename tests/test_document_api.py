"""Integration tests for the /documents and /sync endpoints."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from docsync.api.dependencies import set_sync_engine
from docsync.application.sync_engine import SyncEngine
from docsync.domain.errors import DocumentNotFoundError, InvalidDocumentPathError
from docsync.domain.models import (
    Document,
    DocumentLinks,
    DocumentView,
    IncomingLink,
    OutgoingLink,
)


@pytest.fixture()
def mock_sync_engine() -> MagicMock:
    """Create and inject a mock SyncEngine."""
    mock = MagicMock(spec=SyncEngine)
    mock.is_syncing_all = False
    set_sync_engine(mock)
    yield mock
    set_sync_engine(None)


def _doc(doc_id: str = "d1", path: str = "guide.md", title: str = "Intro") -> Document:
    return Document(id=doc_id, path=path, title=title, content="See [[Setup]]")


def _view(document: Document) -> DocumentView:
    return DocumentView(
        document=document,
        links=DocumentLinks(
            outgoing=[
                OutgoingLink(
                    id="l1",
                    target_id=None,
                    target_path="Setup",
                    link_text="Setup",
                    missing=True,
                )
            ],
            incoming=[
                IncomingLink(
                    id="l2",
                    source_id="d2",
                    source_path="other.md",
                    source_title="Other",
                    link_text="Intro",
                )
            ],
        ),
    )


class TestSyncEndpoint:
    def test_sync_should_return_count(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        mock_sync_engine.sync_all.return_value = 3

        resp = client.post("/sync")

        assert resp.status_code == 200
        assert resp.json()["synced"] == 3

    def test_sync_should_return_409_while_running(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        mock_sync_engine.is_syncing_all = True

        resp = client.post("/sync")

        assert resp.status_code == 409
        assert resp.json()["detail"]["error_code"] == "SYNC_IN_PROGRESS"
        mock_sync_engine.sync_all.assert_not_called()


class TestListAndGet:
    def test_list_should_return_documents(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        mock_sync_engine.list_documents.return_value = [
            _doc("d1", "a.md", "A"),
            _doc("d2", "b.md", "B"),
        ]

        resp = client.get("/documents")

        assert resp.status_code == 200
        body = resp.json()
        assert body["total"] == 2
        assert [d["path"] for d in body["documents"]] == ["a.md", "b.md"]

    def test_get_should_return_document_with_links(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        mock_sync_engine.get_document_view.return_value = _view(_doc())

        resp = client.get("/documents/d1")

        assert resp.status_code == 200
        body = resp.json()
        assert body["document"]["title"] == "Intro"
        assert body["links"]["outgoing"][0]["missing"] is True
        assert body["links"]["incoming"][0]["source_title"] == "Other"

    def test_get_should_return_404_for_unknown_id(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        mock_sync_engine.get_document_view.side_effect = DocumentNotFoundError("nope")

        resp = client.get("/documents/unknown")

        assert resp.status_code == 404
        assert resp.json()["detail"]["error_code"] == "DOCUMENT_NOT_FOUND"


class TestSave:
    def test_post_should_save_and_return_201(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        doc = _doc()
        mock_sync_engine.save_document.return_value = doc
        mock_sync_engine.get_document_view.return_value = _view(doc)

        resp = client.post(
            "/documents",
            json={"path": "guide.md", "content": "# Intro", "frontmatter": {"tags": ["a"]}},
        )

        assert resp.status_code == 201
        assert resp.json()["document"]["id"] == "d1"
        mock_sync_engine.save_document.assert_awaited_once_with(
            "guide.md", "# Intro", {"tags": ["a"]}
        )

    def test_post_without_frontmatter_should_pass_none(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        doc = _doc()
        mock_sync_engine.save_document.return_value = doc
        mock_sync_engine.get_document_view.return_value = _view(doc)

        client.post("/documents", json={"path": "guide.md", "content": "# Intro"})

        mock_sync_engine.save_document.assert_awaited_once_with("guide.md", "# Intro", None)

    def test_post_should_return_400_for_invalid_path(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        mock_sync_engine.save_document.side_effect = InvalidDocumentPathError("escape")

        resp = client.post("/documents", json={"path": "../x.md", "content": ""})

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "INVALID_PATH"

    def test_post_should_return_422_for_missing_path(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        resp = client.post("/documents", json={"content": "# Intro"})

        assert resp.status_code == 422

    def test_put_should_save_at_existing_path(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        doc = _doc()
        mock_sync_engine.get_document.return_value = doc
        mock_sync_engine.save_document.return_value = doc
        mock_sync_engine.get_document_view.return_value = _view(doc)

        resp = client.put("/documents/d1", json={"content": "# Updated"})

        assert resp.status_code == 200
        mock_sync_engine.save_document.assert_awaited_once_with("guide.md", "# Updated", None)

    def test_put_should_return_404_for_unknown_id(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        mock_sync_engine.get_document.side_effect = DocumentNotFoundError("nope")

        resp = client.put("/documents/unknown", json={"content": "# Updated"})

        assert resp.status_code == 404
        mock_sync_engine.save_document.assert_not_called()


class TestDelete:
    def test_delete_should_return_success(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        mock_sync_engine.delete_document.return_value = True

        resp = client.delete("/documents/d1")

        assert resp.status_code == 200
        assert resp.json() == {"success": True}

    def test_delete_should_return_404_for_unknown_id(
        self, client: TestClient, mock_sync_engine: MagicMock
    ) -> None:
        mock_sync_engine.delete_document.return_value = False

        resp = client.delete("/documents/unknown")

        assert resp.status_code == 404
