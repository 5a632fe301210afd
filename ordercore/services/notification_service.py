# ordercore/services/notification_service.py
from ordercore.celery_worker import celery_app
from ordercore.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Serwis do wysyłania powiadomień o zamówieniach.
    Używa Celery do asynchronicznego przetwarzania, wołany dopiero po commicie.
    """

    @staticmethod
    def send_order_placed(user_id: int, order_id: int, order_number: str):
        """
        Wysyła potwierdzenie złożenia zamówienia.
        """
        return send_order_placed_task.delay(user_id, order_id, order_number)

    @staticmethod
    def send_status_changed(user_id: int, order_id: int, status: str):
        """
        Wysyła informację o zmianie statusu zamówienia.
        """
        return send_order_status_task.delay(user_id, order_id, status)


@celery_app.task(name="ordercore.services.notification_service.send_order_placed_task")
def send_order_placed_task(user_id: int, order_id: int, order_number: str):
    """
    Celery task - w prawdziwym systemie wysłałby email/SMS/push.
    Teraz tylko loguje.
    """
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_number} (id {order_id}) placed")

    return {"user_id": user_id, "order_id": order_id, "order_number": order_number, "status": "sent"}


@celery_app.task(name="ordercore.services.notification_service.send_order_status_task")
def send_order_status_task(user_id: int, order_id: int, status: str):
    logger.info(f"[NOTIFICATION] User {user_id}: Order {order_id} is now {status}")

    return {"user_id": user_id, "order_id": order_id, "order_status": status, "status": "sent"}
