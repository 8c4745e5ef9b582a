# app/services/notification_service.py
from app.celery_worker import celery_app
from app.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Envoi des notifications de commande.
    Traitement asynchrone via Celery.
    """

    @staticmethod
    def send_order_confirmation(order: dict):
        """
        Confirmation de commande (paiement a la livraison), FR + AR.
        `order` contient order_number, total (str), email, customer_name.
        """
        send_order_confirmation_task.delay(order)

    @staticmethod
    def send_order_cancellation(order_number: str, email: str | None):
        send_order_cancellation_task.delay(order_number, email)


def build_order_confirmation(order: dict) -> str:
    name = order.get("customer_name") or ""
    return (
        "تأكيد الطلب - Confirmation de commande\n"
        f"مرحباً {name} / Bonjour {name},\n"
        "تم استلام طلبكم بنجاح - Votre commande a été reçue avec succès\n"
        f"رقم الطلب - Numéro de commande: {order['order_number']}\n"
        f"المبلغ الإجمالي - Montant total: {order['total']} DZD\n"
        "طريقة الدفع - Mode de paiement: الدفع عند الاستلام / Paiement à la livraison\n"
        "شكراً لاختياركم MJ CHAUFFAGE - Merci d'avoir choisi MJ CHAUFFAGE"
    )


@celery_app.task(name="app.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(order: dict):
    """
    Tache Celery - un vrai systeme enverrait un email/SMS.
    Pour l'instant on journalise le contenu.
    """
    content = build_order_confirmation(order)
    logger.info(
        f"[NOTIFICATION] Commande {order['order_number']} -> {order.get('email') or 'sans email'}\n{content}"
    )
    return {"order_number": order["order_number"], "status": "sent"}


@celery_app.task(name="app.services.notification_service.send_order_cancellation_task")
def send_order_cancellation_task(order_number: str, email: str | None = None):
    logger.info(f"[NOTIFICATION] Commande {order_number} annulée -> {email or 'sans email'}")
    return {"order_number": order_number, "status": "sent"}
