from core.imports import Blueprint, jwt_required, request
from core.auth import BUYER_ROLES, CUSTOMER, current_user_id, roles_required
from core.errors import BadRequestError, NotFoundError
from core.extensions import db
from core.responses import get_json, int_arg, pagination_meta, success_response
from models.orderModels import ORDER_STATUSES, Order, OrderMessage
from services.notifications import notify_order_message
from services.orders import CUSTOMER_CANCEL_REASON, create_order, order_dict, transition
from services.payments import process_order_payment
from services.pricing import as_number

orders_bp = Blueprint('orders', __name__)

CUSTOMER_CANCELLABLE = ("PENDING", "CONFIRMED")


def owned_order(order_id, user_id):
    order = Order.query.filter_by(id=order_id, user_id=user_id).first()
    if not order:
        raise NotFoundError("Commande non trouvée")
    return order


@orders_bp.route('', methods=['POST'])
@roles_required(*BUYER_ROLES)
def place_order():
    """
    Place an order from the cart
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - shippingAddressId
          properties:
            shippingAddressId:
              type: integer
              example: 1
            items:
              type: array
              description: Subset of the cart to order; the whole cart when omitted
              items:
                type: object
                properties:
                  productId:
                    type: integer
                  quantity:
                    type: integer
            notes:
              type: string
    responses:
      201:
        description: Order created, stock reserved, ordered lines removed from the cart
      400:
        description: Empty cart, unavailable product or insufficient stock
      404:
        description: Shipping address not found
    """
    data = get_json()
    address_id = data.get("shippingAddressId")
    if not isinstance(address_id, int):
        raise BadRequestError("shippingAddressId est requis")
    items = data.get("items")
    if items is not None and not isinstance(items, list):
        raise BadRequestError("items doit être une liste")

    order = create_order(current_user_id(), address_id, items, data.get("notes"))
    return success_response(order_dict(order), "Commande créée avec succès", 201)


@orders_bp.route('', methods=['GET'])
@jwt_required()
def list_orders():
    page = int_arg("page", 1)
    limit = int_arg("limit", 10, maximum=100)
    query = Order.query.filter_by(user_id=current_user_id())

    status = request.args.get("status")
    if status:
        if status not in ORDER_STATUSES:
            raise BadRequestError("status invalide")
        query = query.filter(Order.status == status)

    total = query.count()
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return success_response(
        {"orders": [order_dict(order) for order in orders], "pagination": pagination_meta(total, page, limit)},
        "Commandes récupérées avec succès",
    )


@orders_bp.route('/<int:order_id>/summary', methods=['GET'])
@jwt_required()
def order_summary(order_id):
    order = owned_order(order_id, current_user_id())
    data = order_dict(order, with_payments=True)
    data["itemCount"] = sum(item.quantity for item in order.order_items)
    return success_response(data, "Récapitulatif de la commande")


@orders_bp.route('/<int:order_id>/confirmation', methods=['GET'])
@jwt_required()
def order_confirmation(order_id):
    order = owned_order(order_id, current_user_id())
    latest_payment = order.payments[0] if order.payments else None

    sellers = {}
    for item in order.order_items:
        product = item.product
        if product and product.seller and product.seller_id not in sellers:
            sellers[product.seller_id] = product.seller.public_dict()

    data = {
        "order": order_dict(order),
        "payment": latest_payment.to_dict() if latest_payment else None,
        "sellers": list(sellers.values()),
        "amountDue": as_number(order.total),
        "message": f"Merci pour votre commande {order.order_number} !",
    }
    return success_response(data, "Confirmation de commande")


@orders_bp.route('/<int:order_id>/payment', methods=['POST'])
@roles_required(*BUYER_ROLES)
def pay_order(order_id):
    """
    Pay an order with one of the supported methods
    ---
    tags:
      - Orders
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
            - method
          properties:
            method:
              type: string
              enum: [MOBILE_MONEY, CASH_ON_DELIVERY, DIRECT_CONTACT]
            provider:
              type: string
              enum: [ORANGE_MONEY, WAVE, MTN, MOOV, T_MONEY]
            phoneNumber:
              type: string
            notes:
              type: string
    responses:
      200:
        description: Payment created
      409:
        description: An active payment already exists for this order
    """
    result = process_order_payment(current_user_id(), order_id, get_json())
    return success_response(result, "Paiement initié avec succès")


@orders_bp.route('/<int:order_id>/cancel', methods=['POST'])
@roles_required(*BUYER_ROLES)
def cancel_order(order_id):
    order = owned_order(order_id, current_user_id())
    if order.status not in CUSTOMER_CANCELLABLE:
        raise BadRequestError("Cette commande ne peut plus être annulée")
    reason = get_json().get("reason") or CUSTOMER_CANCEL_REASON
    transition(order, "CANCELLED", reason)
    return success_response(order_dict(order), "Commande annulée avec succès")


def order_sellers(order):
    return {item.product.seller_id for item in order.order_items if item.product is not None}


@orders_bp.route('/<int:order_id>/messages', methods=['POST'])
@jwt_required()
def send_order_message(order_id):
    order = owned_order(order_id, current_user_id())
    text = (get_json().get("message") or "").strip()
    if not text:
        raise BadRequestError("Le message ne peut pas être vide")

    message = OrderMessage(order_id=order.id, sender_id=order.user_id, sender_role=CUSTOMER, message=text)
    db.session.add(message)
    db.session.commit()

    for seller_id in order_sellers(order):
        notify_order_message(order, message, recipient_id=seller_id, title="Nouveau message du client")
    return success_response(message.to_dict(), "Message envoyé avec succès", 201)


@orders_bp.route('/<int:order_id>/messages', methods=['GET'])
@jwt_required()
def get_order_messages(order_id):
    order = owned_order(order_id, current_user_id())
    messages = OrderMessage.query.filter_by(order_id=order.id) \
        .order_by(OrderMessage.created_at, OrderMessage.id).all()
    unread = [m for m in messages if m.sender_role != CUSTOMER and not m.is_read]
    data = {
        "messages": [m.to_dict() for m in messages],
        "unreadCount": len(unread),
    }
    if unread:
        for m in unread:
            m.is_read = True
        db.session.commit()
    return success_response(data, "Messages récupérés avec succès")
