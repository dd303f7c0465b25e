"""Tests for owner notifications."""
from types import SimpleNamespace

import tasks.celery_tasks as celery_tasks
from integrations.push_gateway import OwnerNotification, PushGatewayClient
from services.notifier import OwnerNotifier


def test_disabled_notifier_sends_nothing(monkeypatch):
    queued = []
    monkeypatch.setattr(celery_tasks, "notify_owner", SimpleNamespace(delay=lambda *args: queued.append(args)))

    OwnerNotifier(enabled=False).send("load_accepted", 1)

    assert queued == []


def test_enabled_notifier_enqueues_task(monkeypatch):
    queued = []
    monkeypatch.setattr(celery_tasks, "notify_owner", SimpleNamespace(delay=lambda *args: queued.append(args)))

    OwnerNotifier(enabled=True).send("delivery_started", 42, delivery_order=2)

    assert queued == [("delivery_started", 42, {"delivery_order": 2})]


def test_enqueue_failure_is_swallowed(monkeypatch):
    def broker_down(*args):
        raise ConnectionError("broker unreachable")

    monkeypatch.setattr(celery_tasks, "notify_owner", SimpleNamespace(delay=broker_down))

    OwnerNotifier(enabled=True).send("delivery_completed", 42)


def test_unconfigured_gateway_only_logs():
    notification = OwnerNotification(event="load_accepted", load_id=7)

    assert PushGatewayClient(base_url="").send(notification) is False


def test_notify_task_reports_delivery_failure(monkeypatch):
    def failing_send(self, notification):
        raise RuntimeError("gateway exploded")

    monkeypatch.setattr(PushGatewayClient, "send", failing_send)

    result = celery_tasks.notify_owner.run("load_accepted", 7, {})

    assert result == {"event": "load_accepted", "load_id": 7, "delivered": False}
