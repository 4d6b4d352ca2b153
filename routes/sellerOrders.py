import logging

from core.imports import Blueprint, request, current_app, send_file, BytesIO, datetime, timedelta
from core.auth import SELLER, SELLER_ROLES, current_user_id, roles_required
from core.errors import ApiError, BadRequestError, ForbiddenError, NotFoundError
from core.extensions import db
from core.responses import get_json, int_arg, pagination_meta, success_response
from models.catalogModels import Product
from models.orderModels import ORDER_STATUSES, Order, OrderItem, OrderMessage
from models.userModel import User
from services.invoice import render_invoice
from services.mailer import MailDeliveryError, send_invoice_email
from services.notifications import notify_order_message
from services.orders import apply_tracking, order_dict, transition
from services.pricing import ZERO, as_number, to_money

seller_orders_bp = Blueprint('seller_orders', __name__)
logger = logging.getLogger(__name__)

STATUS_SHORTCUTS = {
    "pending": "PENDING",
    "confirmed": "CONFIRMED",
    "processing": "PROCESSING",
    "shipped": "SHIPPED",
    "delivered": "DELIVERED",
    "cancelled": "CANCELLED",
    "returned": "REFUNDED",
}

TRACKING_FIELDS = ("trackingNumber", "trackingUrl", "carrier")


def seller_items(order, seller_id):
    return [item for item in order.order_items if item.product is not None and item.product.seller_id == seller_id]


def seller_order(order_id):
    """Load an order the current seller has at least one line in."""
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Commande non trouvée")
    seller_id = current_user_id()
    items = seller_items(order, seller_id)
    if not items:
        raise ForbiddenError("Vous n'avez pas accès à cette commande")
    return order, items


def seller_order_dict(order, items, **kwargs):
    data = order_dict(order, items=items, **kwargs)
    data["sellerTotal"] = as_number(sum((to_money(item.total) for item in items), ZERO))
    data["customer"] = order.user.public_dict() if order.user else None
    return data


def parse_date(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise BadRequestError(f"{name} doit être une date ISO 8601 valide")


def list_seller_orders(status=None):
    seller_id = current_user_id()
    page = int_arg("page", 1)
    limit = int_arg("limit", 10, maximum=100)

    owned = db.session.query(OrderItem.order_id).join(Product, OrderItem.product_id == Product.id) \
        .filter(Product.seller_id == seller_id)
    query = Order.query.filter(Order.id.in_(owned))

    status = status or request.args.get("status")
    if status:
        if status not in ORDER_STATUSES:
            raise BadRequestError("status invalide")
        query = query.filter(Order.status == status)
    order_number = request.args.get("orderNumber")
    if order_number:
        query = query.filter(Order.order_number.ilike(f"%{order_number}%"))
    start = parse_date("startDate")
    if start:
        query = query.filter(Order.created_at >= start)
    end = parse_date("endDate")
    if end:
        # a bare date means the whole day
        if end.hour == end.minute == end.second == 0:
            end += timedelta(days=1)
        query = query.filter(Order.created_at < end)

    total = query.count()
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        {
            "orders": [seller_order_dict(o, seller_items(o, seller_id)) for o in orders],
            "pagination": pagination_meta(total, page, limit),
        },
        "Commandes récupérées avec succès",
    )


@seller_orders_bp.route('', methods=['GET'])
@roles_required(*SELLER_ROLES)
def list_orders():
    """
    List orders containing the seller's products
    ---
    tags:
      - Seller orders
    security:
      - Bearer: []
    parameters:
      - name: status
        in: query
        type: string
        enum: [PENDING, CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED, REFUNDED]
      - name: orderNumber
        in: query
        type: string
      - name: startDate
        in: query
        type: string
        format: date
      - name: endDate
        in: query
        type: string
        format: date
      - name: page
        in: query
        type: integer
      - name: limit
        in: query
        type: integer
    responses:
      200:
        description: Orders with only the seller's own lines
    """
    return list_seller_orders()


@seller_orders_bp.route('/<any(pending, confirmed, processing, shipped, delivered, cancelled, returned):shortcut>',
                        methods=['GET'])
@roles_required(*SELLER_ROLES)
def list_orders_by_status(shortcut):
    return list_seller_orders(STATUS_SHORTCUTS[shortcut])


@seller_orders_bp.route('/<int:order_id>', methods=['GET'])
@roles_required(*SELLER_ROLES)
def get_order(order_id):
    order, items = seller_order(order_id)
    return success_response(seller_order_dict(order, items, with_payments=True, with_messages=True),
                            "Commande récupérée avec succès")


def move(order_id, status, reason=None, tracking=None):
    order, items = seller_order(order_id)
    transition(order, status, reason, tracking)
    return seller_order_dict(order, items)


@seller_orders_bp.route('/<int:order_id>/status', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def update_status(order_id):
    """
    Move an order to a new status
    ---
    tags:
      - Seller orders
    security:
      - Bearer: []
    parameters:
      - name: order_id
        in: path
        type: integer
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - status
          properties:
            status:
              type: string
              enum: [CONFIRMED, PROCESSING, SHIPPED, DELIVERED, CANCELLED, REFUNDED]
            reason:
              type: string
    responses:
      200:
        description: Status updated and customer notified
      400:
        description: Transition not allowed from the current status
      403:
        description: The order has none of the seller's products
      404:
        description: Order not found
    """
    data = get_json()
    status = data.get("status")
    if not status:
        raise BadRequestError("status est requis")
    tracking = {key: data[key] for key in TRACKING_FIELDS if data.get(key) is not None}
    result = move(order_id, status, data.get("reason"), tracking or None)
    return success_response(result, "Statut de la commande mis à jour")


@seller_orders_bp.route('/<int:order_id>/confirm', methods=['POST'])
@roles_required(*SELLER_ROLES)
def confirm(order_id):
    return success_response(move(order_id, "CONFIRMED"), "Commande confirmée")


@seller_orders_bp.route('/<int:order_id>/process', methods=['POST'])
@roles_required(*SELLER_ROLES)
def process(order_id):
    return success_response(move(order_id, "PROCESSING"), "Commande en préparation")


@seller_orders_bp.route('/<int:order_id>/ship', methods=['POST'])
@roles_required(*SELLER_ROLES)
def ship(order_id):
    data = get_json()
    tracking = {key: data[key] for key in TRACKING_FIELDS if data.get(key) is not None}
    return success_response(move(order_id, "SHIPPED", tracking=tracking or None), "Commande expédiée")


@seller_orders_bp.route('/<int:order_id>/deliver', methods=['POST'])
@roles_required(*SELLER_ROLES)
def deliver(order_id):
    return success_response(move(order_id, "DELIVERED"), "Commande livrée")


@seller_orders_bp.route('/<int:order_id>/cancel', methods=['POST'])
@roles_required(*SELLER_ROLES)
def cancel(order_id):
    return success_response(move(order_id, "CANCELLED", get_json().get("reason")), "Commande annulée")


@seller_orders_bp.route('/<int:order_id>/refund', methods=['POST'])
@roles_required(*SELLER_ROLES)
def refund(order_id):
    order, items = seller_order(order_id)
    if order.status != "DELIVERED":
        raise BadRequestError("Seules les commandes livrées peuvent être remboursées")
    transition(order, "REFUNDED", get_json().get("reason"))
    return success_response(seller_order_dict(order, items), "Commande remboursée")


@seller_orders_bp.route('/<int:order_id>/tracking', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def update_tracking(order_id):
    order, items = seller_order(order_id)
    data = get_json()
    tracking = {key: data[key] for key in TRACKING_FIELDS if data.get(key) is not None}
    if not tracking:
        raise BadRequestError("Aucune information de suivi fournie")
    apply_tracking(order, tracking)
    db.session.commit()
    return success_response(seller_order_dict(order, items), "Informations de suivi mises à jour")


@seller_orders_bp.route('/<int:order_id>/customer-info', methods=['GET'])
@roles_required(*SELLER_ROLES)
def customer_info(order_id):
    order, _ = seller_order(order_id)
    customer = order.user
    seller_id = current_user_id()
    owned = db.session.query(OrderItem.order_id).join(Product, OrderItem.product_id == Product.id) \
        .filter(Product.seller_id == seller_id)
    orders_with_seller = Order.query.filter(Order.user_id == order.user_id, Order.id.in_(owned)).count()

    data = {
        "customer": customer.public_dict() if customer else None,
        "shippingAddress": order.shipping_dict(),
        "ordersWithSeller": orders_with_seller,
        "memberSince": customer.created_at.isoformat() if customer and customer.created_at else None,
    }
    return success_response(data, "Informations client récupérées")


@seller_orders_bp.route('/<int:order_id>/messages', methods=['POST'])
@roles_required(*SELLER_ROLES)
def send_message(order_id):
    order, _ = seller_order(order_id)
    text = (get_json().get("message") or "").strip()
    if not text:
        raise BadRequestError("Le message ne peut pas être vide")

    message = OrderMessage(order_id=order.id, sender_id=current_user_id(), sender_role=SELLER, message=text)
    db.session.add(message)
    db.session.commit()
    notify_order_message(order, message)
    return success_response(message.to_dict(), "Message envoyé avec succès", 201)


@seller_orders_bp.route('/<int:order_id>/messages', methods=['GET'])
@roles_required(*SELLER_ROLES)
def get_messages(order_id):
    order, _ = seller_order(order_id)
    messages = OrderMessage.query.filter_by(order_id=order.id) \
        .order_by(OrderMessage.created_at, OrderMessage.id).all()
    unread = [m for m in messages if m.sender_role == "CUSTOMER" and not m.is_read]
    data = {"messages": [m.to_dict() for m in messages], "unreadCount": len(unread)}
    if unread:
        for m in unread:
            m.is_read = True
        db.session.commit()
    return success_response(data, "Messages récupérés avec succès")


@seller_orders_bp.route('/messages/all', methods=['GET'])
@roles_required(*SELLER_ROLES)
def all_messages():
    seller_id = current_user_id()
    page = int_arg("page", 1)
    limit = int_arg("limit", 20, maximum=100)
    owned = db.session.query(OrderItem.order_id).join(Product, OrderItem.product_id == Product.id) \
        .filter(Product.seller_id == seller_id)
    query = OrderMessage.query.filter(OrderMessage.order_id.in_(owned))

    total = query.count()
    unread = query.filter(OrderMessage.sender_role == "CUSTOMER", OrderMessage.is_read.is_(False)).count()
    messages = query.order_by(OrderMessage.created_at.desc(), OrderMessage.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return success_response({
        "messages": [m.to_dict() for m in messages],
        "unreadCount": unread,
        "pagination": pagination_meta(total, page, limit),
    }, "Messages récupérés avec succès")


def build_invoice(order, items):
    seller = db.session.get(User, current_user_id())
    return render_invoice(order, seller=seller, items=items, store_name=current_app.config["STORE_NAME"])


@seller_orders_bp.route('/<int:order_id>/invoice', methods=['GET'])
@roles_required(*SELLER_ROLES)
def download_invoice(order_id):
    """
    Download the invoice of an order as PDF
    ---
    tags:
      - Seller orders
    security:
      - Bearer: []
    produces:
      - application/pdf
    responses:
      200:
        description: PDF listing the seller's lines
    """
    order, items = seller_order(order_id)
    pdf = build_invoice(order, items)
    return send_file(BytesIO(pdf), mimetype="application/pdf", as_attachment=True,
                     download_name=f"facture-{order.order_number}.pdf")


@seller_orders_bp.route('/<int:order_id>/invoice/send', methods=['POST'])
@roles_required(*SELLER_ROLES)
def send_invoice(order_id):
    order, items = seller_order(order_id)
    if not order.user or not order.user.email:
        raise BadRequestError("Le client n'a pas d'adresse email")
    pdf = build_invoice(order, items)
    try:
        send_invoice_email(order.user.email, order, pdf)
    except MailDeliveryError:
        raise ApiError("Erreur lors de l'envoi de la facture par email")
    logger.info("Invoice for order %s sent to customer %s", order.order_number, order.user_id)
    return success_response({"email": order.user.email}, "Facture envoyée au client")
