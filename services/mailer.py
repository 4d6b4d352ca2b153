import logging

from flask import current_app
from flask_mail import Message

from core.extensions import mail

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    pass


def send_email(to, subject, body, attachments=None):
    msg = Message(subject=subject, recipients=[to])
    msg.html = body
    for filename, content_type, data in attachments or []:
        msg.attach(filename, content_type, data)
    try:
        mail.send(msg)
    except Exception as e:
        logger.exception("Error sending email to %s", to)
        raise MailDeliveryError(str(e)) from e


def _layout(title, content):
    return f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #1a1a1a;">{title}</h2>
      {content}
      <p style="color: #888; font-size: 12px;">{current_app.config.get("STORE_NAME", "")}</p>
    </div>
    """


def send_password_reset_email(email, token):
    link = f"{current_app.config['FRONTEND_URL']}/reset-password?token={token}"
    body = _layout(
        "Réinitialisation de votre mot de passe",
        f"""
        <p>Vous avez demandé la réinitialisation de votre mot de passe.</p>
        <p><a href="{link}">Réinitialiser mon mot de passe</a></p>
        <p>Ce lien expire dans 1 heure. Si vous n'êtes pas à l'origine de cette demande, ignorez cet e-mail.</p>
        """,
    )
    send_email(email, "Réinitialisation de votre mot de passe", body)


def send_verification_email(email, token):
    link = f"{current_app.config['FRONTEND_URL']}/verify-email?token={token}"
    body = _layout(
        "Vérifiez votre adresse e-mail",
        f"""
        <p>Merci de confirmer votre adresse e-mail en cliquant sur le lien ci-dessous.</p>
        <p><a href="{link}">Vérifier mon e-mail</a></p>
        <p>Ce lien expire dans 24 heures.</p>
        """,
    )
    send_email(email, "Vérification de votre adresse e-mail", body)


def send_invoice_email(email, order, pdf_bytes):
    body = _layout(
        f"Facture de votre commande {order.order_number}",
        "<p>Veuillez trouver ci-joint la facture de votre commande.</p>",
    )
    send_email(
        email,
        f"Facture - Commande {order.order_number}",
        body,
        attachments=[(f"facture-{order.order_number}.pdf", "application/pdf", pdf_bytes)],
    )
