"""Unit tests for notification clients and the post-commit dispatcher"""

import json
import httpx
import pytest
from prometheus_client import REGISTRY
from unittest.mock import AsyncMock
from fintara_gateway.domain.models import Notification, NotificationChannel
from fintara_gateway.infrastructure.clients.notifications import EmailClient, PushClient
from fintara_gateway.infrastructure.notifier import NotificationDispatcher


def _transport(statuses, calls):
    """MockTransport answering with the given status codes in order"""
    responses = iter(statuses)

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(next(responses))

    return httpx.MockTransport(handler)


async def test_push_client_posts_payload():
    calls = []
    client = PushClient(base_url="http://push.test", transport=_transport([200], calls), backoff_base=0)

    await client.send("user-1", "Loan disbursed", "Your loan has been disbursed")

    assert len(calls) == 1
    assert calls[0].url == "http://push.test/notifications"
    assert json.loads(calls[0].content)["user_id"] == "user-1"


async def test_client_retries_server_errors_then_succeeds():
    calls = []
    client = EmailClient(
        base_url="http://mail.test", transport=_transport([503, 502, 200], calls), backoff_base=0, max_retries=3
    )

    await client.send("dewi@example.com", "loan_disbursed", {"name": "Dewi"})

    assert len(calls) == 3


async def test_client_gives_up_after_max_retries():
    calls = []
    client = EmailClient(
        base_url="http://mail.test", transport=_transport([500, 500, 500], calls), backoff_base=0, max_retries=3
    )

    with pytest.raises(httpx.HTTPStatusError):
        await client.send("dewi@example.com", "loan_disbursed", {})

    assert len(calls) == 3


async def test_client_does_not_retry_client_errors():
    calls = []
    client = PushClient(base_url="http://push.test", transport=_transport([422, 200], calls), backoff_base=0)

    with pytest.raises(httpx.HTTPStatusError):
        await client.send("user-1", "t", "b")

    assert len(calls) == 1


async def test_dispatcher_routes_by_channel():
    push, email = AsyncMock(), AsyncMock()
    dispatcher = NotificationDispatcher(push_client=push, email_client=email)
    notifications = [
        Notification(channel=NotificationChannel.PUSH, recipient="user-1", title="Approved", body="ok"),
        Notification(
            channel=NotificationChannel.EMAIL,
            recipient="dewi@example.com",
            template="loan_disbursed",
            params={"name": "Dewi"},
        ),
    ]

    delivered = await dispatcher.dispatch(notifications)

    assert delivered == 2
    push.send.assert_awaited_once_with("user-1", "Approved", "ok")
    email.send.assert_awaited_once_with("dewi@example.com", "loan_disbursed", {"name": "Dewi"})


async def test_dispatcher_swallows_delivery_failures():
    """A failed push must not stop the email, and nothing is raised"""
    push, email = AsyncMock(), AsyncMock()
    push.send.side_effect = httpx.ConnectError("push gateway down")
    dispatcher = NotificationDispatcher(push_client=push, email_client=email)
    notifications = [
        Notification(channel=NotificationChannel.PUSH, recipient="user-1", title="t", body="b"),
        Notification(channel=NotificationChannel.EMAIL, recipient="a@b.c", template="loan_disbursement_failed"),
    ]

    delivered = await dispatcher.dispatch(notifications, request_id="req-1")

    assert delivered == 1
    email.send.assert_awaited_once()


async def test_dispatcher_survives_non_transport_errors():
    """A misconfigured provider URL is dropped and counted; later notifications still go out"""
    push, email = AsyncMock(), AsyncMock()
    push.send.side_effect = httpx.InvalidURL("missing scheme")
    dispatcher = NotificationDispatcher(push_client=push, email_client=email)
    notifications = [
        Notification(channel=NotificationChannel.PUSH, recipient="user-1", title="t", body="b"),
        Notification(channel=NotificationChannel.EMAIL, recipient="a@b.c", template="loan_disbursed"),
    ]
    before = REGISTRY.get_sample_value("notifications_dropped_total", {"channel": "push"}) or 0

    delivered = await dispatcher.dispatch(notifications, request_id="req-2")

    assert delivered == 1
    email.send.assert_awaited_once()
    assert REGISTRY.get_sample_value("notifications_dropped_total", {"channel": "push"}) == before + 1
