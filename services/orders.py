"""Order placement and the order status lifecycle.

``transition`` is the only code path that writes ``Order.status``. Every
allowed move is listed in ``TRANSITIONS``; there are no self-loops, so each
lifecycle timestamp is stamped at most once.
"""
import logging
import random
import time
from datetime import datetime

from core.errors import BadRequestError, NotFoundError
from core.extensions import db
from models.cartModels import Cart
from models.orderModels import Order, OrderItem
from models.userModel import Address
from services.notifications import notify_order_status
from services.pricing import ZERO, as_number, product_pricing, to_money

logger = logging.getLogger(__name__)

TRANSITIONS = {
    "PENDING": ("CONFIRMED", "CANCELLED"),
    "CONFIRMED": ("PROCESSING", "CANCELLED"),
    "PROCESSING": ("SHIPPED", "CANCELLED"),
    "SHIPPED": ("DELIVERED", "CANCELLED"),
    "DELIVERED": ("REFUNDED",),
    "CANCELLED": (),
    "REFUNDED": (),
}

TIMESTAMP_FIELDS = {
    "CONFIRMED": "confirmed_at",
    "PROCESSING": "processed_at",
    "SHIPPED": "shipped_at",
    "DELIVERED": "delivered_at",
    "CANCELLED": "cancelled_at",
    "REFUNDED": "refunded_at",
}

DEFAULT_CANCEL_REASON = "Commande annulée"
CUSTOMER_CANCEL_REASON = "Annulée par le client"


def generate_order_number():
    return f"CMD-{int(time.time() * 1000)}-{random.randint(0, 9999):04d}"


def validate_transition(current, new):
    if new not in TRANSITIONS:
        raise BadRequestError(f"Statut invalide : {new}")
    if new not in TRANSITIONS.get(current, ()):
        raise BadRequestError(
            f"Transition de statut invalide : impossible de passer de {current} à {new}"
        )


def release_stock(order):
    """Give back the reservations held by every line of the order."""
    for item in order.order_items:
        product = item.product
        if product is None or not product.track_inventory or product.stock is None:
            continue
        stock = product.stock
        stock.reserved_quantity = max(0, stock.reserved_quantity - item.quantity)


def transition(order, status, reason=None, tracking=None, notify=True):
    """Move ``order`` to ``status`` in one transaction, then notify its owner."""
    validate_transition(order.status, status)
    now = datetime.utcnow()
    try:
        order.status = status
        setattr(order, TIMESTAMP_FIELDS[status], now)
        if tracking:
            apply_tracking(order, tracking)
        if status == "CANCELLED":
            order.cancelled_reason = reason or DEFAULT_CANCEL_REASON
            release_stock(order)
        elif status == "REFUNDED" and reason:
            order.refund_reason = reason
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info("Order %s moved to %s", order.order_number, status)
    if notify:
        notify_order_status(order, status, reason)
    return order


def apply_tracking(order, tracking):
    for key, attr in (("trackingNumber", "tracking_number"), ("trackingUrl", "tracking_url"),
                      ("carrier", "carrier")):
        if tracking.get(key) is not None:
            setattr(order, attr, tracking[key])


def _lines_to_order(cart, requested):
    if not requested:
        return [(item, item.quantity) for item in cart.cart_items]

    by_product = {item.product_id: item for item in cart.cart_items}
    lines = []
    seen = set()
    for entry in requested:
        try:
            product_id = int(entry.get("productId"))
        except (TypeError, ValueError):
            raise BadRequestError("productId doit être un identifiant valide")
        item = by_product.get(product_id)
        if item is None:
            raise BadRequestError("Certains produits demandés ne sont pas dans le panier")
        if product_id in seen:
            raise BadRequestError("Chaque produit ne peut apparaître qu'une fois dans la commande")
        seen.add(product_id)
        quantity = entry["quantity"] if "quantity" in entry else item.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise BadRequestError("La quantité doit être au moins 1")
        lines.append((item, quantity))
    return lines


def create_order(user_id, shipping_address_id, requested_items=None, notes=None):
    """Place an order from the user's cart.

    Validation runs first; the order, its lines, the stock reservations and
    the removal of the ordered cart lines are then committed together.
    """
    address = Address.query.filter_by(id=shipping_address_id, user_id=user_id).first()
    if not address:
        raise NotFoundError("Adresse de livraison non trouvée")

    cart = Cart.query.filter_by(user_id=user_id).first()
    if not cart or not cart.cart_items:
        raise BadRequestError("Le panier est vide")

    lines = _lines_to_order(cart, requested_items)

    subtotal = ZERO
    total_discount = ZERO
    order_items = []
    for cart_item, quantity in lines:
        product = cart_item.product
        if product.status != "ACTIVE":
            raise BadRequestError(f"Le produit \"{product.name}\" n'est pas disponible pour l'achat")
        if product.track_inventory and product.stock is not None:
            available = product.stock.available
            if available < quantity:
                raise BadRequestError(
                    f"Stock insuffisant pour \"{product.name}\". Quantité disponible: {available}"
                )

        pricing = product_pricing(product)
        line_total = pricing.final_price * quantity
        subtotal += line_total
        total_discount += pricing.discount_amount * quantity
        order_items.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            product_sku=product.sku,
            quantity=quantity,
            unit_price=pricing.final_price,
            discount=pricing.discount_amount,
            total=to_money(line_total),
        ))

    tax = ZERO
    shipping = ZERO
    order = Order(
        user_id=user_id,
        order_number=generate_order_number(),
        status="PENDING",
        subtotal=to_money(subtotal),
        tax=tax,
        shipping=shipping,
        discount=to_money(total_discount),
        total=to_money(subtotal + tax + shipping),
        shipping_address=address.address,
        shipping_city=address.city,
        shipping_region=address.region,
        shipping_country=address.country,
        shipping_postal_code=address.postal_code,
        recipient_name=address.recipient_name,
        recipient_phone=address.phone,
        notes=notes,
        order_items=order_items,
    )

    try:
        db.session.add(order)
        for cart_item, quantity in lines:
            product = cart_item.product
            if product.track_inventory and product.stock is not None:
                product.stock.reserved_quantity += quantity
            db.session.delete(cart_item)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Order creation failed for user %s", user_id)
        raise

    logger.info("Order %s created for user %s", order.order_number, user_id)
    return order


def order_item_dict(item):
    product = item.product
    return {
        "id": item.id,
        "productId": item.product_id,
        "productName": item.product_name,
        "productSku": item.product_sku,
        "product": {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "image": product.primary_image,
        } if product else None,
        "quantity": item.quantity,
        "unitPrice": as_number(item.unit_price),
        "discount": as_number(item.discount),
        "total": as_number(item.total),
    }


def order_dict(order, items=None, with_payments=False, with_messages=False):
    items = order.order_items if items is None else items
    data = {
        "id": order.id,
        "orderNumber": order.order_number,
        "status": order.status,
        "subtotal": as_number(order.subtotal),
        "tax": as_number(order.tax),
        "shipping": as_number(order.shipping),
        "discount": as_number(order.discount),
        "total": as_number(order.total),
        "shippingAddress": order.shipping_dict(),
        "items": [order_item_dict(item) for item in items],
        "notes": order.notes,
        "tracking": {
            "trackingNumber": order.tracking_number,
            "trackingUrl": order.tracking_url,
            "carrier": order.carrier,
        },
        "cancelledReason": order.cancelled_reason,
        "refundReason": order.refund_reason,
        "confirmedAt": _iso(order.confirmed_at),
        "processedAt": _iso(order.processed_at),
        "shippedAt": _iso(order.shipped_at),
        "deliveredAt": _iso(order.delivered_at),
        "cancelledAt": _iso(order.cancelled_at),
        "refundedAt": _iso(order.refunded_at),
        "createdAt": _iso(order.created_at),
        "updatedAt": _iso(order.updated_at),
    }
    if with_payments:
        data["payments"] = [payment.to_dict() for payment in order.payments]
    if with_messages:
        data["messages"] = [message.to_dict() for message in order.messages]
    return data


def _iso(value):
    return value.isoformat() if value else None
