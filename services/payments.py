"""Payment paths for orders: mobile money through PayDunya, cash on delivery,
direct contact, and reconciliation of PayDunya callbacks.

The "one active payment per order" rule is a check followed by an insert
without a lock; two concurrent requests for the same order can both pass it.
"""
import json
import logging
from datetime import datetime

from core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from core.extensions import db, paydunya
from models.orderModels import ACTIVE_PAYMENT_STATUSES, Order, Payment
from services.orders import transition
from services.pricing import as_number

logger = logging.getLogger(__name__)

MOBILE_MONEY_PROVIDERS = ("ORANGE_MONEY", "WAVE", "MTN", "MOOV", "T_MONEY")

GATEWAY_STATUS = {
    "completed": "COMPLETED",
    "paid": "COMPLETED",
    "cancelled": "CANCELLED",
    "failed": "FAILED",
}


def payable_order(order_id, user_id):
    order = Order.query.filter_by(id=order_id, user_id=user_id).first()
    if not order:
        raise NotFoundError("Commande non trouvée")
    if order.status in ("CANCELLED", "REFUNDED"):
        raise BadRequestError("Cette commande ne peut plus être payée")
    existing = Payment.query.filter(
        Payment.order_id == order.id,
        Payment.status.in_(ACTIVE_PAYMENT_STATUSES),
    ).first()
    if existing:
        raise ConflictError("Un paiement est déjà en cours ou complété pour cette commande")
    return order


def _confirm_if_pending(order):
    if order.status == "PENDING":
        transition(order, "CONFIRMED")


def _payment_result(payment, order, **extra):
    result = {
        "id": payment.id,
        "orderId": order.id,
        "orderNumber": order.order_number,
        "method": payment.method,
        "status": payment.status,
        "amount": as_number(payment.amount),
    }
    result.update(extra)
    return result


def process_mobile_money(user_id, order_id, phone_number, provider):
    if not phone_number:
        raise BadRequestError("phoneNumber est requis")
    if provider not in MOBILE_MONEY_PROVIDERS:
        raise BadRequestError("provider doit être un fournisseur valide")

    order = payable_order(order_id, user_id)
    items = [{
        "name": item.product_name,
        "quantity": item.quantity,
        "unit_price": as_number(item.unit_price),
        "total_price": as_number(item.total),
        "description": item.product_sku or "",
    } for item in order.order_items]

    invoice = paydunya.create_invoice(
        total_amount=as_number(order.total),
        description=f"Commande {order.order_number}",
        items=items,
        custom_data={"order_id": order.id, "order_number": order.order_number},
    )
    payment_url = invoice["response_text"]
    token = invoice["token"]

    payment = Payment(
        order_id=order.id,
        method="MOBILE_MONEY",
        status="PENDING",
        amount=order.total,
        currency="XOF",
        paydunya_token=token,
        paydunya_invoice_id=payment_url.rstrip("/").split("/")[-1] or None,
        mobile_money_number=phone_number,
        mobile_money_provider=provider,
    )
    db.session.add(payment)
    db.session.commit()
    logger.info("Mobile money payment %s created for order %s", payment.id, order.order_number)
    return _payment_result(payment, order, paymentUrl=payment_url, token=token)


def process_cash_on_delivery(user_id, order_id, notes=None):
    order = payable_order(order_id, user_id)
    payment = Payment(
        order_id=order.id,
        method="CASH_ON_DELIVERY",
        status="PENDING",
        amount=order.total,
        currency="XOF",
        metadata_=notes or None,
    )
    db.session.add(payment)
    db.session.commit()
    _confirm_if_pending(order)
    return _payment_result(
        payment, order,
        message="Paiement à la livraison confirmé. La commande sera livrée et payée à la réception.",
    )


def process_direct_contact(user_id, order_id, email=None, phone=None, message=None):
    order = payable_order(order_id, user_id)
    payment = Payment(
        order_id=order.id,
        method="DIRECT_CONTACT",
        status="PENDING",
        amount=order.total,
        currency="XOF",
        metadata_=json.dumps({"email": email, "phone": phone, "message": message}),
    )
    db.session.add(payment)
    db.session.commit()
    _confirm_if_pending(order)
    return _payment_result(
        payment, order,
        message="Votre demande de contact direct a été enregistrée. L'équipe vous contactera bientôt.",
    )


def process_order_payment(user_id, order_id, data):
    method = data.get("method")
    if method == "MOBILE_MONEY":
        return process_mobile_money(user_id, order_id, data.get("phoneNumber"), data.get("provider"))
    if method == "CASH_ON_DELIVERY":
        return process_cash_on_delivery(user_id, order_id, data.get("notes"))
    if method == "DIRECT_CONTACT":
        return process_direct_contact(user_id, order_id, data.get("email"), data.get("phone"),
                                      data.get("message") or data.get("notes"))
    raise BadRequestError("method doit être une méthode de paiement valide")


def extract_token(payload):
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    invoice = data.get("invoice") if isinstance(data.get("invoice"), dict) else {}
    return payload.get("token") or data.get("token") or invoice.get("token")


def apply_gateway_status(payment, invoice_data):
    """Copy the gateway's view of an invoice onto ``payment`` and commit."""
    invoice = invoice_data.get("invoice") or {}
    gateway_status = (invoice_data.get("status") or invoice.get("status") or "").lower()
    status = GATEWAY_STATUS.get(gateway_status, "PENDING")

    payment.status = status
    payment.paydunya_receipt_url = invoice_data.get("receipt_url") or invoice.get("receipt_url")
    payment.transaction_id = invoice_data.get("txn_code") or invoice.get("txn_code") or payment.transaction_id
    payment.paid_at = datetime.utcnow() if status == "COMPLETED" else None
    payment.failure_reason = (invoice_data.get("description") or "Paiement échoué") if status == "FAILED" else None
    db.session.commit()

    if status == "COMPLETED":
        _confirm_if_pending(payment.order)
    return status


def handle_webhook(payload):
    token = extract_token(payload)
    if not token:
        raise BadRequestError("Token manquant dans le webhook")

    payment = Payment.query.filter_by(paydunya_token=token).first()
    if not payment:
        logger.warning("PayDunya webhook for unknown token %s", token)
        return {"success": False, "message": "Paiement non trouvé"}

    # the notification body only names the invoice; its status comes from the gateway
    invoice_data = paydunya.verify_invoice(token)
    status = apply_gateway_status(payment, invoice_data)
    logger.info("Payment %s reconciled to %s", payment.id, status)
    return {"success": True, "paymentId": payment.id, "status": status}


def verify_payment(token, user_id, role):
    payment = Payment.query.filter_by(paydunya_token=token).first()
    if not payment:
        raise NotFoundError("Paiement non trouvé")
    order = payment.order
    if role in ("CUSTOMER", "ENTERPRISE") and order.user_id != user_id:
        raise ForbiddenError("Vous n'êtes pas autorisé à consulter ce paiement")

    if payment.status in ("PENDING", "PROCESSING"):
        apply_gateway_status(payment, paydunya.verify_invoice(token))

    return {
        "payment": payment.to_dict(),
        "order": {
            "id": order.id,
            "orderNumber": order.order_number,
            "status": order.status,
            "total": as_number(order.total),
        },
    }
