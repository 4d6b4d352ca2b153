import logging

from core.imports import Blueprint, jwt_required, request, re
from core.auth import BUYER_ROLES, current_role, current_user_id, roles_required
from core.errors import BadRequestError
from core.extensions import paydunya
from core.responses import get_json, success_response
from services.payments import (handle_webhook, process_cash_on_delivery, process_direct_contact,
                               process_mobile_money, verify_payment)

payments_bp = Blueprint('payments', __name__)
logger = logging.getLogger(__name__)

FORM_KEY = re.compile(r"\[([^\]]*)\]")


def order_id_from(data):
    order_id = data.get("orderId")
    if not isinstance(order_id, int) or isinstance(order_id, bool):
        raise BadRequestError("orderId est requis")
    return order_id


def nest_form(form):
    """Turn PayDunya's ``data[invoice][token]`` style form keys into nested dicts."""
    nested = {}
    for key, value in form.items():
        head = key.split("[", 1)[0]
        parts = [head] + FORM_KEY.findall(key[len(head):])
        target = nested
        for part in parts[:-1]:
            target = target.setdefault(part, {})
            if not isinstance(target, dict):
                break
        else:
            target[parts[-1]] = value
    return nested


@payments_bp.route('/mobile-money', methods=['POST'])
@roles_required(*BUYER_ROLES)
def mobile_money():
    """
    Start a mobile money payment through PayDunya
    ---
    tags:
      - Payments
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - orderId
            - provider
            - phoneNumber
          properties:
            orderId:
              type: integer
              example: 12
            provider:
              type: string
              enum: [ORANGE_MONEY, WAVE, MTN, MOOV, T_MONEY]
            phoneNumber:
              type: string
              example: "+221771234567"
    responses:
      200:
        description: Payment created, redirect the customer to paymentUrl
      400:
        description: Invalid provider, order not payable or gateway error
      404:
        description: Order not found
      409:
        description: An active payment already exists for this order
    """
    data = get_json()
    result = process_mobile_money(current_user_id(), order_id_from(data), data.get("phoneNumber"),
                                  data.get("provider"))
    return success_response(result, "Paiement mobile money initié avec succès")


@payments_bp.route('/cash-on-delivery', methods=['POST'])
@roles_required(*BUYER_ROLES)
def cash_on_delivery():
    data = get_json()
    result = process_cash_on_delivery(current_user_id(), order_id_from(data), data.get("notes"))
    return success_response(result, "Paiement à la livraison enregistré")


@payments_bp.route('/direct-contact', methods=['POST'])
@roles_required(*BUYER_ROLES)
def direct_contact():
    data = get_json()
    result = process_direct_contact(current_user_id(), order_id_from(data), data.get("email"),
                                    data.get("phone"), data.get("message"))
    return success_response(result, "Demande de contact direct enregistrée")


@payments_bp.route('/verify/<token>', methods=['GET'])
@jwt_required()
def verify(token):
    result = verify_payment(token, current_user_id(), current_role())
    return success_response(result, "Statut du paiement récupéré")


@payments_bp.route('/paydunya/webhook', methods=['POST'])
def paydunya_webhook():
    """
    PayDunya instant payment notification
    ---
    tags:
      - Payments
    consumes:
      - application/json
      - application/x-www-form-urlencoded
    responses:
      200:
        description: Notification processed, or ignored for an unknown token
      400:
        description: Missing token or bad signature
    """
    signature = request.headers.get("PAYDUNYA-SIGNATURE")
    if signature and not paydunya.verify_signature(request.get_data(), signature):
        logger.warning("PayDunya webhook rejected: signature mismatch")
        raise BadRequestError("Signature invalide")

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = nest_form(request.form)

    result = handle_webhook(payload)
    message = "Webhook traité" if result.get("success") else result.get("message")
    return success_response(result, message)
