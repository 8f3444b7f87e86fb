"""Notification hub tests."""

import pytest

from derivrisk.services.notifications import NotificationHub


@pytest.mark.asyncio
async def test_delivers_to_connected_user():
    hub = NotificationHub()
    queue = hub.connect("user-1")

    await hub.send_to_user("user-1", "greeks_update", {"updates": []})

    message = queue.get_nowait()
    assert message["event"] == "greeks_update"
    assert message["data"] == {"updates": []}
    assert "sent_at" in message
    assert hub.get_stats()["sent"] == 1


@pytest.mark.asyncio
async def test_unconnected_user_counts_as_dropped():
    hub = NotificationHub()
    await hub.send_to_user("nobody", "risk_violation", {})
    stats = hub.get_stats()
    assert stats["dropped"] == 1
    assert stats["sent"] == 0


@pytest.mark.asyncio
async def test_full_queue_drops_oldest():
    hub = NotificationHub(max_queue_size=2)
    queue = hub.connect("user-1")

    for i in range(3):
        await hub.send_to_user("user-1", "tick", {"n": i})

    assert [queue.get_nowait()["data"]["n"] for _ in range(2)] == [1, 2]
    assert hub.get_stats()["dropped"] == 1


def test_connect_is_idempotent():
    hub = NotificationHub()
    assert hub.connect("user-1") is hub.connect("user-1")
    hub.connect("user-2")

    hub.close("user-1")
    assert not hub.is_connected("user-1")
    assert hub.is_connected("user-2")

    hub.close()
    assert hub.get_stats()["connected_users"] == 0
