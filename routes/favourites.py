from core.imports import Blueprint, IntegrityError
from core.auth import BUYER_ROLES, current_user_id, roles_required
from core.errors import BadRequestError, ConflictError, NotFoundError
from core.extensions import db
from core.responses import get_json, int_arg, pagination_meta, success_response
from models.catalogModels import Product
from models.favouriteModels import Favourites
from services.catalog import product_card

favourites_bp = Blueprint('favourites', __name__)


def favourite_dict(favourite):
    return {
        "id": favourite.id,
        "productId": favourite.product_id,
        "dateAdded": favourite.date_added.isoformat() if favourite.date_added else None,
        "product": product_card(favourite.product),
    }


@favourites_bp.route('', methods=['GET'])
@roles_required(*BUYER_ROLES)
def list_favourites():
    """
    List the current user's favourite products
    ---
    tags:
      - Favourites
    security:
      - Bearer: []
    responses:
      200:
        description: Favourites with current product pricing
    """
    page = int_arg("page", 1)
    limit = int_arg("limit", 20, maximum=100)
    query = Favourites.query.filter_by(user_id=current_user_id())
    total = query.count()
    favourites = query.order_by(Favourites.date_added.desc(), Favourites.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return success_response(
        {"favorites": [favourite_dict(f) for f in favourites], "pagination": pagination_meta(total, page, limit)},
        "Favoris récupérés avec succès",
    )


@favourites_bp.route('', methods=['POST'])
@roles_required(*BUYER_ROLES)
def add_favourite():
    user_id = current_user_id()
    product_id = get_json().get("productId")
    if not isinstance(product_id, int):
        raise BadRequestError("productId est requis")

    product = db.session.get(Product, product_id)
    if not product or product.status == "ARCHIVED":
        raise NotFoundError("Produit non trouvé")
    if Favourites.query.filter_by(user_id=user_id, product_id=product.id).first():
        raise ConflictError("Ce produit est déjà dans vos favoris")

    favourite = Favourites(user_id=user_id, product_id=product.id)
    db.session.add(favourite)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Ce produit est déjà dans vos favoris")
    return success_response(favourite_dict(favourite), "Produit ajouté aux favoris", 201)


@favourites_bp.route('/<int:product_id>', methods=['DELETE'])
@roles_required(*BUYER_ROLES)
def remove_favourite(product_id):
    favourite = Favourites.query.filter_by(user_id=current_user_id(), product_id=product_id).first()
    if not favourite:
        raise NotFoundError("Ce produit n'est pas dans vos favoris")
    db.session.delete(favourite)
    db.session.commit()
    return success_response(None, "Produit retiré des favoris")
