from unittest.mock import MagicMock

import pytest
import requests

from app.services import sendgrid_service as sendgrid_module
from app.services.sendgrid_service import SENDGRID_API_URL, SendGridError, SendGridService


def _service(response=None, error=None):
    service = SendGridService(
        api_key="SG.test", from_email="bids@clipper.example.com", from_name="Clipper Construction"
    )
    service._session = MagicMock()
    if error is not None:
        service._session.post.side_effect = error
    else:
        service._session.post.return_value = response
    return service


def _response(status_code, text="", headers=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.text = text
    response.headers = headers or {}
    return response


@pytest.mark.asyncio
async def test_send_posts_payload_and_returns_message_id():
    service = _service(_response(202, headers={"X-Message-Id": "abc123"}))

    result = await service.send(
        "sub@example.com", "Reminder", "plain", html_body="<p>html</p>", to_name="Acme"
    )

    assert result == {"accepted": True, "status_code": 202, "message_id": "abc123"}
    args, kwargs = service._session.post.call_args
    assert args[0] == SENDGRID_API_URL
    assert kwargs["headers"]["Authorization"] == "Bearer SG.test"
    payload = kwargs["json"]
    assert payload["personalizations"][0]["to"] == [{"email": "sub@example.com", "name": "Acme"}]
    assert payload["personalizations"][0]["subject"] == "Reminder"
    assert payload["from"] == {"email": "bids@clipper.example.com", "name": "Clipper Construction"}
    assert [c["type"] for c in payload["content"]] == ["text/plain", "text/html"]


@pytest.mark.asyncio
async def test_plain_text_only_when_no_html():
    service = _service(_response(202))

    await service.send("sub@example.com", "Reminder", "plain")

    payload = service._session.post.call_args.kwargs["json"]
    assert payload["content"] == [{"type": "text/plain", "value": "plain"}]
    assert payload["personalizations"][0]["to"] == [{"email": "sub@example.com"}]


@pytest.mark.asyncio
async def test_rejected_request_raises_with_status():
    service = _service(_response(400, text='{"errors":[{"message":"bad from"}]}'))

    with pytest.raises(SendGridError) as exc_info:
        await service.send("sub@example.com", "Reminder", "plain")

    assert exc_info.value.status_code == 400
    assert "bad from" in exc_info.value.response_text
    assert exc_info.value.recoverable is False


@pytest.mark.asyncio
async def test_server_error_is_recoverable():
    service = _service(_response(503, text="unavailable"))

    with pytest.raises(SendGridError) as exc_info:
        await service.send("sub@example.com", "Reminder", "plain")

    assert exc_info.value.recoverable is True


@pytest.mark.asyncio
async def test_network_error_raises_and_is_attempted_once():
    service = _service(error=requests.ConnectionError("connection refused"))

    with pytest.raises(SendGridError):
        await service.send("sub@example.com", "Reminder", "plain")

    assert service._session.post.call_count == 1


@pytest.mark.asyncio
async def test_missing_key_never_calls_api():
    service = SendGridService(api_key="")
    service._session = MagicMock()

    with pytest.raises(SendGridError):
        await service.send("sub@example.com", "Reminder", "plain")

    assert service.is_configured is False
    service._session.post.assert_not_called()


@pytest.mark.asyncio
async def test_post_runs_in_a_worker_thread(monkeypatch):
    service = _service(_response(202))
    offloaded = []

    async def fake_to_thread(func, *args, **kwargs):
        offloaded.append(func)
        return func(*args, **kwargs)

    monkeypatch.setattr(sendgrid_module.asyncio, "to_thread", fake_to_thread)

    await service.send("sub@example.com", "Reminder", "plain")

    assert offloaded == [service._session.post]
    service._session.post.assert_called_once()
