from pathlib import Path

from fastapi.testclient import TestClient

from transfer_harness.sites.tests.app_factory import create_app
from transfer_harness.sites.tests.fixture_server import load_app
from transfer_harness.sites.tests.registry import TRANSFER_PAGE_MODULE


def test_transfer_page_is_served_at_root_and_index() -> None:
    client = TestClient(load_app(TRANSFER_PAGE_MODULE))

    for path in ("/", "/index.html"):
        response = client.get(path)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert 'id="recipient"' in response.text
        assert 'id="amount"' in response.text


def test_other_paths_are_plain_404() -> None:
    client = TestClient(load_app(TRANSFER_PAGE_MODULE))

    for path in ("/api/transfer", "/favicon.ico", "/docs"):
        response = client.get(path)
        assert response.status_code == 404
        assert response.text == "Not found"
        assert response.headers["content-type"].startswith("text/plain")


def test_unrouted_transfer_post_is_404() -> None:
    client = TestClient(load_app(TRANSFER_PAGE_MODULE))
    response = client.post("/api/transfer", json={"recipient": "a@b.c", "amount": 1})
    assert response.status_code == 404


def test_page_is_reread_per_request(tmp_path: Path) -> None:
    page = tmp_path / "page.html"
    page.write_text("<p>first</p>", encoding="utf-8")
    client = TestClient(create_app(page, "Scratch"))

    assert client.get("/").text == "<p>first</p>"
    page.write_text("<p>second</p>", encoding="utf-8")
    assert client.get("/").text == "<p>second</p>"


def test_wrong_method_on_page_keeps_405() -> None:
    client = TestClient(load_app(TRANSFER_PAGE_MODULE))

    response = client.post("/", json={})

    assert response.status_code == 405
    assert "GET" in response.headers["allow"]
    assert response.text == "Method Not Allowed"
