from datetime import timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from storefront import crud
from storefront.models import DownloadToken
from storefront.services.download_tokens import generate_token
from storefront.utils.timestamps import utcnow
from tests.factories import make_order, make_template

FETCH = "storefront.api.v1.endpoints.downloads.fetch_template_file"
TEMPLATE_JSON = b'{"name": "Budget Planner", "pages": []}'


@pytest.fixture
def template(db):
    return make_template(db, title="Budget Planner")


def _issue(db, template, **overrides):
    order = make_order(db, template, status="paid")
    values = {
        "token": generate_token(),
        "buyer_id": order.buyer_id,
        "template_id": template.id,
        "order_id": order.id,
        "expires_at": utcnow() + timedelta(days=7),
    }
    values.update(overrides)
    token = DownloadToken(**values)
    db.add(token)
    db.commit()
    return token.token


def _upstream(status_code=200, content=TEMPLATE_JSON, content_type="application/json"):
    return httpx.Response(status_code, content=content, headers={"content-type": content_type})


def test_download_returns_attachment(client, db, template):
    token = _issue(db, template)

    with patch(FETCH, new=AsyncMock(return_value=_upstream())) as fetch:
        response = client.get(f"/api/v1/downloads/{token}")

    assert response.status_code == 200
    assert response.content == TEMPLATE_JSON
    assert response.headers["content-disposition"] == 'attachment; filename="budget-planner.json"'
    assert response.headers["cache-control"] == "no-store"
    fetch.assert_awaited_once_with(template.download_file_url)

    db.expire_all()
    assert crud.download_token.get_by_token(db, token=token).used_at is not None


def test_token_can_be_reused_until_expiry(client, db, template):
    token = _issue(db, template)

    with patch(FETCH, new=AsyncMock(return_value=_upstream())):
        first = client.get(f"/api/v1/downloads/{token}")
        db.expire_all()
        used_at = crud.download_token.get_by_token(db, token=token).used_at
        second = client.get(f"/api/v1/downloads/{token}")

    assert first.status_code == second.status_code == 200
    db.expire_all()
    assert crud.download_token.get_by_token(db, token=token).used_at == used_at


def test_malformed_token(client):
    response = client.get("/api/v1/downloads/not-a-token")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_TOKEN"


def test_unknown_token(client):
    response = client.get(f"/api/v1/downloads/{generate_token()}")
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "TOKEN_NOT_FOUND"


def test_expired_token(client, db, template):
    token = _issue(db, template, expires_at=utcnow() - timedelta(seconds=1))

    response = client.get(f"/api/v1/downloads/{token}")

    assert response.status_code == 410
    assert response.json()["error"]["code"] == "TOKEN_EXPIRED"


def test_template_without_file(client, db):
    template = make_template(db, download_file_url=None)
    token = _issue(db, template)

    response = client.get(f"/api/v1/downloads/{token}")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "FILE_NOT_AVAILABLE"


@pytest.mark.parametrize(
    "upstream,status,code",
    [
        (_upstream(status_code=403), 502, "FILE_FETCH_FAILED"),
        (_upstream(content=b"<html>login</html>", content_type="text/html"), 500, "INVALID_FILE_FORMAT"),
        (_upstream(content=b"{not json"), 500, "INVALID_FILE_FORMAT"),
    ],
)
def test_bad_upstream_file(client, db, template, upstream, status, code):
    token = _issue(db, template)

    with patch(FETCH, new=AsyncMock(return_value=upstream)):
        response = client.get(f"/api/v1/downloads/{token}")

    assert response.status_code == status
    assert response.json()["error"]["code"] == code
    db.expire_all()
    assert crud.download_token.get_by_token(db, token=token).used_at is None


def test_file_host_unreachable(client, db, template):
    token = _issue(db, template)

    with patch(FETCH, new=AsyncMock(side_effect=httpx.ConnectError("refused"))):
        response = client.get(f"/api/v1/downloads/{token}")

    assert response.status_code == 502
    assert response.json()["error"]["code"] == "FILE_FETCH_FAILED"
