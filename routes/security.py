import logging

from core.imports import Blueprint, jwt_required, datetime, timedelta, uuid
from core.auth import current_user_id
from core.errors import BadRequestError, NotFoundError, UnauthorizedError
from core.extensions import db, bcrypt
from core.responses import get_json, int_arg, success_response
from models.userModel import LoginActivity, User
from routes.auth import validate_password
from services.accounts import get_or_create_security_settings
from services.mailer import MailDeliveryError, send_verification_email

security_bp = Blueprint('security', __name__)
logger = logging.getLogger(__name__)

SETTING_FIELDS = (("profileVisibility", "profile_visibility"), ("showEmail", "show_email"),
                  ("showPhone", "show_phone"), ("allowMessages", "allow_messages"),
                  ("twoFactorEnabled", "two_factor_enabled"), ("emailNotifications", "email_notifications"),
                  ("loginAlerts", "login_alerts"), ("deviceManagement", "device_management"))

MIN_SESSION_TIMEOUT = 5
MAX_SESSION_TIMEOUT = 1440
MAX_HISTORY = 50


def load_user(user_id=None):
    user = db.session.get(User, user_id or current_user_id())
    if not user:
        raise NotFoundError("Utilisateur non trouvé")
    return user


@security_bp.route('/change-password', methods=['POST'])
@jwt_required()
def change_password():
    """
    Change the current user's password
    ---
    tags:
      - Security
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            currentPassword:
              type: string
            newPassword:
              type: string
    responses:
      200:
        description: Password changed
      400:
        description: New password invalid or identical to the current one
      401:
        description: Current password is wrong
    """
    user = load_user()
    data = get_json()
    current = data.get("currentPassword") or ""
    new = data.get("newPassword")

    if not bcrypt.check_password_hash(user.password, current):
        raise UnauthorizedError("Mot de passe actuel incorrect")
    validate_password(new, "newPassword")
    if new == current:
        raise BadRequestError("Le nouveau mot de passe doit être différent de l'actuel")

    user.password = bcrypt.generate_password_hash(new).decode("utf-8")
    db.session.commit()
    return success_response(None, "Mot de passe modifié avec succès")


@security_bp.route('/verify-email', methods=['POST'])
def verify_email():
    token = get_json().get("token")
    if not token:
        raise BadRequestError("token est requis")

    user = User.query.filter_by(email_verification_token=token).first()
    if not user or not user.email_verification_expires or user.email_verification_expires < datetime.utcnow():
        raise BadRequestError("Token de vérification invalide ou expiré")
    if user.email_verified:
        raise BadRequestError("Email déjà vérifié")

    user.email_verified = True
    user.email_verification_token = None
    user.email_verification_expires = None
    db.session.commit()
    return success_response(None, "Email vérifié avec succès")


@security_bp.route('/resend-verification-email', methods=['POST'])
@jwt_required()
def resend_verification_email():
    user = load_user()
    if user.email_verified:
        raise BadRequestError("Email déjà vérifié")

    user.email_verification_token = str(uuid.uuid4())
    user.email_verification_expires = datetime.utcnow() + timedelta(hours=24)
    db.session.commit()
    try:
        send_verification_email(user.email, user.email_verification_token)
    except MailDeliveryError:
        logger.warning("Verification email could not be delivered to user %s", user.id)
    return success_response(None, "Email de vérification envoyé")


@security_bp.route('/settings', methods=['GET'])
@jwt_required()
def get_settings():
    settings = get_or_create_security_settings(load_user())
    return success_response(settings.to_dict(), "Paramètres de sécurité récupérés avec succès")


@security_bp.route('/settings', methods=['PUT'])
@jwt_required()
def update_settings():
    settings = get_or_create_security_settings(load_user())
    data = get_json()

    if "sessionTimeout" in data:
        timeout = data["sessionTimeout"]
        if not isinstance(timeout, int) or isinstance(timeout, bool) \
                or not MIN_SESSION_TIMEOUT <= timeout <= MAX_SESSION_TIMEOUT:
            raise BadRequestError(
                f"sessionTimeout doit être compris entre {MIN_SESSION_TIMEOUT} et {MAX_SESSION_TIMEOUT} minutes"
            )
        settings.session_timeout = timeout

    for key, attr in SETTING_FIELDS:
        if key in data and data[key] is not None:
            setattr(settings, attr, bool(data[key]))

    db.session.commit()
    return success_response(settings.to_dict(), "Paramètres de sécurité mis à jour avec succès")


@security_bp.route('/login-history', methods=['GET'])
@jwt_required()
def login_history():
    limit = int_arg("limit", MAX_HISTORY, maximum=MAX_HISTORY)
    activities = LoginActivity.query.filter_by(user_id=current_user_id()) \
        .order_by(LoginActivity.created_at.desc(), LoginActivity.id.desc()).limit(limit).all()
    return success_response([activity.to_dict() for activity in activities],
                            "Historique de connexion récupéré avec succès")


@security_bp.route('/deactivate-account', methods=['POST'])
@jwt_required()
def deactivate_account():
    user = load_user()
    user.is_active = False
    user.refresh_token = None
    db.session.commit()
    logger.info("User %s deactivated their account", user.id)
    return success_response(None, "Compte désactivé avec succès")


@security_bp.route('/reactivate-account', methods=['POST'])
@jwt_required()
def reactivate_account():
    user = load_user()
    if user.is_active:
        raise BadRequestError("Le compte est déjà actif")
    user.is_active = True
    db.session.commit()
    return success_response(None, "Compte réactivé avec succès")


@security_bp.route('/account', methods=['DELETE'])
@jwt_required()
def delete_account():
    """
    Delete the current account

    The row is kept for order history; the email is freed and the account
    can no longer log in.
    ---
    tags:
      - Security
    security:
      - Bearer: []
    responses:
      200:
        description: Account deleted
    """
    user = load_user()
    user.email = f"deleted_{user.id}@deleted.com"
    user.is_active = False
    user.refresh_token = None
    user.reset_password_token = None
    user.email_verification_token = None
    db.session.commit()
    logger.info("User %s deleted their account", user.id)
    return success_response(None, "Compte supprimé avec succès")
