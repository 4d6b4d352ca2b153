from core.imports import Blueprint, jwt_required, datetime
from core.auth import current_user_id
from core.errors import NotFoundError
from core.extensions import db
from core.responses import bool_arg, int_arg, pagination_meta, success_response
from models.notificationModels import Notification
from models.orderModels import Order
from services.pricing import as_number

notifications_bp = Blueprint('notifications', __name__)


def owned_notification(notification_id):
    notification = Notification.query.filter_by(id=notification_id, user_id=current_user_id()).first()
    if not notification:
        raise NotFoundError("Notification non trouvée")
    return notification


@notifications_bp.route('', methods=['GET'])
@jwt_required()
def list_notifications():
    """
    List the current user's notifications, newest first
    ---
    tags:
      - Notifications
    security:
      - Bearer: []
    parameters:
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
      - name: unreadOnly
        in: query
        type: boolean
    responses:
      200:
        description: Notifications, pagination and unread count
    """
    user_id = current_user_id()
    page = int_arg("page", 1)
    limit = int_arg("limit", 20, maximum=100)

    query = Notification.query.filter_by(user_id=user_id)
    if bool_arg("unreadOnly", False):
        query = query.filter_by(is_read=False)
    total = query.count()
    notifications = query.order_by(Notification.created_at.desc(), Notification.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    unread = Notification.query.filter_by(user_id=user_id, is_read=False).count()

    return success_response({
        "notifications": [n.to_dict() for n in notifications],
        "pagination": pagination_meta(total, page, limit),
        "unreadCount": unread,
    }, "Notifications récupérées avec succès")


@notifications_bp.route('/<int:notification_id>/read', methods=['PUT'])
@jwt_required()
def mark_as_read(notification_id):
    notification = owned_notification(notification_id)
    if notification.is_read:
        return success_response(notification.to_dict(), "Notification déjà lue")

    notification.is_read = True
    notification.read_at = datetime.utcnow()
    db.session.commit()
    return success_response(notification.to_dict(), "Notification marquée comme lue")


@notifications_bp.route('/<int:notification_id>', methods=['GET'])
@jwt_required()
def get_notification(notification_id):
    notification = owned_notification(notification_id)
    data = notification.to_dict()

    order_id = (notification.data or {}).get("orderId")
    order = db.session.get(Order, order_id) if order_id else None
    if order and order.user_id == notification.user_id:
        data["order"] = {
            "id": order.id,
            "orderNumber": order.order_number,
            "status": order.status,
            "total": as_number(order.total),
            "items": [{
                "productName": item.product_name,
                "quantity": item.quantity,
                "unitPrice": as_number(item.unit_price),
                "total": as_number(item.total),
            } for item in order.order_items],
        }
    return success_response(data, "Notification récupérée avec succès")
