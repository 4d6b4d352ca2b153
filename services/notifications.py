import logging

from core.extensions import db
from models.notificationModels import Notification

logger = logging.getLogger(__name__)


def create_notification(user_id, type, title, message, data=None, commit=True):
    notification = Notification(user_id=user_id, type=type, title=title, message=message, data=data)
    db.session.add(notification)
    if commit:
        db.session.commit()
    return notification


def _status_message(order, status, reason):
    number = order.order_number
    suffix = f" : {reason}" if reason else ""
    tracking = f" avec le numéro de suivi {order.tracking_number}" if order.tracking_number else ""
    return {
        "CONFIRMED": ("Commande confirmée",
                      f"Votre commande {number} a été confirmée et est en cours de préparation."),
        "PROCESSING": ("Commande en préparation",
                       f"Votre commande {number} est actuellement en cours de préparation."),
        "SHIPPED": ("Commande expédiée", f"Votre commande {number} a été expédiée{tracking}."),
        "DELIVERED": ("Commande livrée",
                      f"Votre commande {number} a été livrée avec succès. Merci pour votre achat !"),
        "CANCELLED": ("Commande annulée", f"Votre commande {number} a été annulée{suffix}."),
        "REFUNDED": ("Remboursement effectué",
                     f"Le remboursement pour votre commande {number} a été effectué{suffix}."),
        "PENDING": ("Mise à jour de commande", f"Votre commande {number} a été mise à jour."),
    }.get(status)


def notify_order_status(order, status, reason=None):
    """Tell the order's owner about a status change.

    Runs after the status change has been committed; a failure here is logged
    and never undoes the transition.
    """
    entry = _status_message(order, status, reason)
    if entry is None:
        return None
    title, message = entry
    try:
        notification = create_notification(
            order.user_id,
            "ORDER_UPDATE",
            title,
            message,
            {"orderId": order.id, "orderNumber": order.order_number, "status": status, "reason": reason},
        )
        logger.info("Notification sent to user %s for order %s (%s)", order.user_id, order.order_number, status)
        return notification
    except Exception:
        db.session.rollback()
        logger.exception("Could not create status notification for order %s", order.order_number)
        return None


def notify_order_message(order, message, recipient_id=None, title="Nouveau message du vendeur"):
    """Tell ``recipient_id`` (the customer by default) about a new message on an order."""
    text = message.message
    preview = text[:100] + ("..." if len(text) > 100 else "")
    try:
        return create_notification(
            recipient_id or order.user_id,
            "ORDER_MESSAGE",
            title,
            f"Vous avez reçu un nouveau message concernant la commande {order.order_number} : {preview}",
            {"orderId": order.id, "orderNumber": order.order_number, "messageId": message.id,
             "senderId": message.sender_id},
        )
    except Exception:
        db.session.rollback()
        logger.exception("Could not create message notification for order %s", order.order_number)
        return None
