import logging

from core.imports import Blueprint, create_access_token, create_refresh_token, jwt_required, get_jwt_identity, get_jwt, datetime, timedelta, uuid, IntegrityError, request
from core.auth import CUSTOMER, ROLES
from core.errors import BadRequestError, ConflictError, UnauthorizedError
from core.extensions import db, bcrypt
from core.responses import get_json, success_response
from models.userModel import User, UserPreferences, UserSecuritySettings
from services.accounts import record_login
from services.mailer import MailDeliveryError, send_password_reset_email

auth_bp = Blueprint('auth', __name__)
logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def issue_tokens(user):
    claims = {"role": user.role, "email": user.email}
    access_token = create_access_token(identity=str(user.id), additional_claims=claims)
    refresh_token = create_refresh_token(identity=str(user.id), additional_claims=claims)
    user.refresh_token = refresh_token
    return access_token, refresh_token


def validate_password(password, field="password"):
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequestError(f"{field} doit contenir au moins {MIN_PASSWORD_LENGTH} caractères")


def create_user(data, role):
    email = (data.get("email") or "").strip().lower()
    password = data.get("password")
    first_name = data.get("firstName")
    last_name = data.get("lastName")

    if not all([email, password, first_name, last_name]):
        raise BadRequestError("email, password, firstName et lastName sont requis")
    if "@" not in email:
        raise BadRequestError("email doit être une adresse email valide")
    validate_password(password)
    if role not in ROLES:
        raise BadRequestError("Rôle invalide")
    if User.query.filter_by(email=email).first():
        raise ConflictError("Un compte avec cet email existe déjà")

    user = User(
        email=email,
        password=bcrypt.generate_password_hash(password).decode("utf-8"),
        first_name=first_name,
        last_name=last_name,
        phone=data.get("phone"),
        role=role,
        preferences=UserPreferences(),
        security_settings=UserSecuritySettings(),
    )
    db.session.add(user)
    try:
        db.session.flush()
        access_token, refresh_token = issue_tokens(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Un compte avec cet email existe déjà")
    return {"user": user.to_dict(), "accessToken": access_token, "refreshToken": refresh_token}


@auth_bp.route('/register', methods=['POST'])
def register():
    """
    Register a user with an explicit role
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - email
            - password
            - firstName
            - lastName
          properties:
            email:
              type: string
              example: "awa@example.com"
            password:
              type: string
              example: "secret123"
            firstName:
              type: string
              example: "Awa"
            lastName:
              type: string
              example: "Diop"
            phone:
              type: string
              example: "+221771234567"
            role:
              type: string
              enum: [CUSTOMER, SELLER, ENTERPRISE, ADMIN, SUPER_ADMIN]
    responses:
      201:
        description: Account created, tokens issued
      400:
        description: Missing or invalid fields
      409:
        description: Email already registered
    """
    data = get_json()
    role = (data.get("role") or CUSTOMER).upper()
    return success_response(create_user(data, role), "Inscription réussie", 201)


@auth_bp.route('/register-public', methods=['POST'])
def register_public():
    """
    Public sign-up, always as a customer
    ---
    tags:
      - Auth
    responses:
      201:
        description: Account created
      409:
        description: Email already registered
    """
    return success_response(create_user(get_json(), CUSTOMER), "Inscription réussie", 201)


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Log in with email and password
    ---
    tags:
      - Auth
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          properties:
            email:
              type: string
            password:
              type: string
    responses:
      200:
        description: Tokens issued
      401:
        description: Invalid credentials or deactivated account
    """
    data = get_json()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        raise BadRequestError("email et password sont requis")

    user = User.query.filter_by(email=email).first()
    if not user or not bcrypt.check_password_hash(user.password, password):
        if user:
            record_login(user.id, success=False, failure_reason="Mot de passe incorrect")
            db.session.commit()
        raise UnauthorizedError("Email ou mot de passe incorrect")

    if not user.is_active:
        record_login(user.id, success=False, failure_reason="Compte désactivé")
        db.session.commit()
        raise UnauthorizedError("Ce compte est désactivé")

    user.last_login = datetime.utcnow()
    access_token, refresh_token = issue_tokens(user)
    record_login(user.id)
    db.session.commit()

    return success_response(
        {"user": user.to_dict(), "accessToken": access_token, "refreshToken": refresh_token},
        "Connexion réussie",
    )


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    user = db.session.get(User, int(get_jwt_identity()))
    if user:
        user.refresh_token = None
        db.session.commit()
    return success_response(None, "Déconnexion réussie")


@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    """
    Request a password reset link
    ---
    tags:
      - Auth
    responses:
      200:
        description: Same answer whether or not the email is registered
    """
    email = (get_json().get("email") or "").strip().lower()
    if not email:
        raise BadRequestError("email est requis")

    user = User.query.filter_by(email=email).first()
    if user and user.is_active:
        user.reset_password_token = str(uuid.uuid4())
        user.reset_password_expires = datetime.utcnow() + timedelta(hours=1)
        db.session.commit()
        try:
            send_password_reset_email(user.email, user.reset_password_token)
        except MailDeliveryError:
            logger.warning("Password reset email could not be delivered to user %s", user.id)

    return success_response(
        None,
        "Si un compte existe avec cet email, un lien de réinitialisation a été envoyé",
    )


@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    data = get_json()
    token = data.get("token")
    new_password = data.get("newPassword")
    if not token:
        raise BadRequestError("token est requis")
    validate_password(new_password, "newPassword")

    user = User.query.filter_by(reset_password_token=token).first()
    if not user or not user.reset_password_expires or user.reset_password_expires < datetime.utcnow():
        raise BadRequestError("Token de réinitialisation invalide ou expiré")

    user.password = bcrypt.generate_password_hash(new_password).decode("utf-8")
    user.reset_password_token = None
    user.reset_password_expires = None
    user.refresh_token = None
    db.session.commit()
    return success_response(None, "Mot de passe réinitialisé avec succès")


@auth_bp.route('/refresh', methods=['POST'])
@jwt_required(refresh=True)
def refresh():
    user = db.session.get(User, int(get_jwt_identity()))
    presented = request.headers.get("Authorization", "").removeprefix("Bearer ").strip()
    if not user or not user.is_active or not user.refresh_token or user.refresh_token != presented:
        raise UnauthorizedError("Refresh token invalide")
    if get_jwt().get("role") != user.role:
        raise UnauthorizedError("Refresh token invalide")

    access_token, refresh_token = issue_tokens(user)
    db.session.commit()
    return success_response({"accessToken": access_token, "refreshToken": refresh_token}, "Token rafraîchi")
