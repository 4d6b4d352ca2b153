from core.imports import Blueprint, jwt_required
from core.auth import current_user_id
from core.errors import BadRequestError, NotFoundError
from core.extensions import db
from core.responses import get_json, success_response
from models.userModel import Address, User
from services.accounts import get_or_create_preferences

profile_bp = Blueprint('profile', __name__)

PROFILE_FIELDS = (("firstName", "first_name"), ("lastName", "last_name"), ("phone", "phone"),
                  ("profilePicture", "profile_picture"))

ADDRESS_FIELDS = (("label", "label"), ("recipientName", "recipient_name"), ("phone", "phone"),
                  ("address", "address"), ("city", "city"), ("region", "region"),
                  ("postalCode", "postal_code"), ("country", "country"))
REQUIRED_ADDRESS_FIELDS = ("recipientName", "phone", "address", "city")

PREFERENCE_FIELDS = (("emailNotifications", "email_notifications"), ("smsNotifications", "sms_notifications"),
                     ("pushNotifications", "push_notifications"), ("marketingEmails", "marketing_emails"),
                     ("language", "language"), ("currency", "currency"))


def load_user():
    user = db.session.get(User, current_user_id())
    if not user:
        raise NotFoundError("Utilisateur non trouvé")
    return user


def owned_address(address_id, user_id):
    address = Address.query.filter_by(id=address_id, user_id=user_id).first()
    if not address:
        raise NotFoundError("Adresse non trouvée")
    return address


def unset_other_defaults(user_id, keep_id=None):
    query = Address.query.filter(Address.user_id == user_id, Address.is_default.is_(True))
    if keep_id is not None:
        query = query.filter(Address.id != keep_id)
    for other in query.all():
        other.is_default = False


@profile_bp.route('', methods=['GET'])
@jwt_required()
def get_profile():
    """
    Get the current user's profile
    ---
    tags:
      - Profile
    security:
      - Bearer: []
    responses:
      200:
        description: Profile with preferences and addresses
      404:
        description: User not found
    """
    user = load_user()
    data = user.to_dict()
    data["preferences"] = get_or_create_preferences(user).to_dict()
    data["addresses"] = [address.to_dict() for address in
                         sorted(user.addresses, key=lambda a: (not a.is_default, a.id))]
    return success_response(data, "Profil récupéré avec succès")


@profile_bp.route('', methods=['PUT'])
@jwt_required()
def update_profile():
    user = load_user()
    data = get_json()
    for key, attr in PROFILE_FIELDS:
        if key in data:
            if key in ("firstName", "lastName") and not data[key]:
                raise BadRequestError(f"{key} ne peut pas être vide")
            setattr(user, attr, data[key])
    db.session.commit()
    return success_response(user.to_dict(), "Profil mis à jour avec succès")


@profile_bp.route('/addresses', methods=['GET'])
@jwt_required()
def list_addresses():
    addresses = Address.query.filter_by(user_id=current_user_id()) \
        .order_by(Address.is_default.desc(), Address.created_at.desc()).all()
    return success_response([address.to_dict() for address in addresses], "Adresses récupérées avec succès")


@profile_bp.route('/addresses', methods=['POST'])
@jwt_required()
def create_address():
    """
    Add a shipping address
    ---
    tags:
      - Profile
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - recipientName
            - phone
            - address
            - city
          properties:
            label:
              type: string
              example: "Maison"
            recipientName:
              type: string
              example: "Awa Diop"
            phone:
              type: string
              example: "+221771234567"
            address:
              type: string
              example: "Rue 10, Médina"
            city:
              type: string
              example: "Dakar"
            country:
              type: string
              example: "Sénégal"
            isDefault:
              type: boolean
    responses:
      201:
        description: Address created
      400:
        description: Missing fields
    """
    user_id = current_user_id()
    data = get_json()
    missing = [field for field in REQUIRED_ADDRESS_FIELDS if not data.get(field)]
    if missing:
        raise BadRequestError(f"Champs requis manquants : {', '.join(missing)}")

    address = Address(user_id=user_id)
    for key, attr in ADDRESS_FIELDS:
        if data.get(key) is not None:
            setattr(address, attr, data[key])

    is_first = Address.query.filter_by(user_id=user_id).count() == 0
    address.is_default = is_first or bool(data.get("isDefault"))
    if address.is_default:
        unset_other_defaults(user_id)

    db.session.add(address)
    db.session.commit()
    return success_response(address.to_dict(), "Adresse ajoutée avec succès", 201)


@profile_bp.route('/addresses/<int:address_id>', methods=['PUT'])
@jwt_required()
def update_address(address_id):
    user_id = current_user_id()
    address = owned_address(address_id, user_id)
    data = get_json()

    for key, attr in ADDRESS_FIELDS:
        if key in data:
            if key in REQUIRED_ADDRESS_FIELDS and not data[key]:
                raise BadRequestError(f"{key} ne peut pas être vide")
            setattr(address, attr, data[key])

    if data.get("isDefault"):
        unset_other_defaults(user_id, keep_id=address.id)
        address.is_default = True

    db.session.commit()
    return success_response(address.to_dict(), "Adresse mise à jour avec succès")


@profile_bp.route('/addresses/<int:address_id>', methods=['DELETE'])
@jwt_required()
def delete_address(address_id):
    user_id = current_user_id()
    address = owned_address(address_id, user_id)
    was_default = address.is_default
    db.session.delete(address)
    db.session.flush()

    if was_default:
        newest = Address.query.filter_by(user_id=user_id) \
            .order_by(Address.created_at.desc(), Address.id.desc()).first()
        if newest:
            newest.is_default = True

    db.session.commit()
    return success_response(None, "Adresse supprimée avec succès")


@profile_bp.route('/preferences', methods=['GET'])
@jwt_required()
def get_preferences():
    preferences = get_or_create_preferences(load_user())
    return success_response(preferences.to_dict(), "Préférences récupérées avec succès")


@profile_bp.route('/preferences', methods=['PUT'])
@jwt_required()
def update_preferences():
    preferences = get_or_create_preferences(load_user())
    data = get_json()
    for key, attr in PREFERENCE_FIELDS:
        if key in data and data[key] is not None:
            setattr(preferences, attr, data[key])
    db.session.commit()
    return success_response(preferences.to_dict(), "Préférences mises à jour avec succès")
