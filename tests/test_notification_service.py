import pytest

from ordercore.celery_worker import celery_app
from ordercore.services.notification_service import (
    NotificationService,
    send_order_placed_task,
    send_order_status_task,
)


@pytest.fixture(autouse=True)
def eager_celery():
    celery_app.conf.task_always_eager = True
    yield
    celery_app.conf.task_always_eager = False


class TestNotificationTasks:
    def test_order_placed_task(self):
        result = send_order_placed_task(1, 10, "ORD-1")

        assert result == {"user_id": 1, "order_id": 10, "order_number": "ORD-1", "status": "sent"}

    def test_status_task(self):
        result = send_order_status_task(1, 10, "Shipped")

        assert result["order_status"] == "Shipped"


class TestNotificationService:
    def test_send_order_placed_runs_task(self):
        result = NotificationService.send_order_placed(1, 10, "ORD-1")

        assert result.get()["order_number"] == "ORD-1"

    def test_send_status_changed_runs_task(self):
        result = NotificationService.send_status_changed(1, 10, "Delivered")

        assert result.get()["order_status"] == "Delivered"
