from core.imports import Blueprint, jwt_required, IntegrityError
from core.auth import current_user_id
from core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from core.extensions import db
from core.responses import get_json, int_arg, pagination_meta, success_response
from models.catalogModels import Product
from models.orderModels import Order, OrderItem
from models.reviewModels import Review
from services.catalog import rating_stats

reviews_bp = Blueprint('reviews', __name__)

PURCHASED_STATUSES = ("CONFIRMED", "PROCESSING", "SHIPPED", "DELIVERED")


def reviewable_product(product_id):
    product = db.session.get(Product, product_id)
    if not product or product.status == "ARCHIVED":
        raise NotFoundError("Produit non trouvé")
    return product


def valid_rating(value):
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= 5:
        raise BadRequestError("rating doit être un entier entre 1 et 5")
    return value


def has_purchased(user_id, product_id):
    return db.session.query(OrderItem.id).join(Order).filter(
        Order.user_id == user_id,
        Order.status.in_(PURCHASED_STATUSES),
        OrderItem.product_id == product_id,
    ).first() is not None


def load_review(review_id):
    review = db.session.get(Review, review_id)
    if not review:
        raise NotFoundError("Avis non trouvé")
    return review


def own_review(review_id):
    review = load_review(review_id)
    if review.user_id != current_user_id():
        raise ForbiddenError("Vous ne pouvez modifier que vos propres avis")
    return review


@reviews_bp.route('/<int:product_id>/reviews', methods=['POST'])
@jwt_required()
def create_review(product_id):
    """
    Review a product
    ---
    tags:
      - Reviews
    security:
      - Bearer: []
    parameters:
      - name: product_id
        in: path
        type: integer
        required: true
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - rating
          properties:
            rating:
              type: integer
              minimum: 1
              maximum: 5
            title:
              type: string
            comment:
              type: string
    responses:
      201:
        description: Review created; verified when the user bought the product
      404:
        description: Product not found
      409:
        description: The user already reviewed this product
    """
    user_id = current_user_id()
    product = reviewable_product(product_id)
    data = get_json()
    rating = valid_rating(data.get("rating"))

    if Review.query.filter_by(user_id=user_id, product_id=product.id).first():
        raise ConflictError("Vous avez déjà laissé un avis pour ce produit")

    review = Review(
        user_id=user_id,
        product_id=product.id,
        rating=rating,
        title=data.get("title"),
        comment=data.get("comment"),
        is_verified=has_purchased(user_id, product.id),
    )
    db.session.add(review)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Vous avez déjà laissé un avis pour ce produit")
    return success_response(review.to_dict(), "Avis ajouté avec succès", 201)


@reviews_bp.route('/<int:product_id>/reviews', methods=['GET'])
def list_reviews(product_id):
    product = reviewable_product(product_id)
    page = int_arg("page", 1)
    limit = int_arg("limit", 10, maximum=100)

    query = Review.query.filter_by(product_id=product.id, is_published=True)
    total = query.count()
    reviews = query.order_by(Review.created_at.desc(), Review.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return success_response(
        {"reviews": [r.to_dict() for r in reviews], "pagination": pagination_meta(total, page, limit)},
        "Avis récupérés avec succès",
    )


@reviews_bp.route('/<int:product_id>/reviews/stats', methods=['GET'])
def review_stats(product_id):
    product = reviewable_product(product_id)
    published = Review.query.filter_by(product_id=product.id, is_published=True).all()
    return success_response(rating_stats(published), "Statistiques des avis")


@reviews_bp.route('/reviews/<int:review_id>', methods=['GET'])
def get_review(review_id):
    review = load_review(review_id)
    if not review.is_published:
        raise NotFoundError("Avis non trouvé")
    return success_response(review.to_dict(), "Avis récupéré avec succès")


@reviews_bp.route('/reviews/<int:review_id>', methods=['PUT'])
@jwt_required()
def update_review(review_id):
    review = own_review(review_id)
    data = get_json()
    if "rating" in data:
        review.rating = valid_rating(data["rating"])
    if "title" in data:
        review.title = data["title"]
    if "comment" in data:
        review.comment = data["comment"]
    db.session.commit()
    return success_response(review.to_dict(), "Avis mis à jour avec succès")


@reviews_bp.route('/reviews/<int:review_id>', methods=['DELETE'])
@jwt_required()
def delete_review(review_id):
    review = own_review(review_id)
    db.session.delete(review)
    db.session.commit()
    return success_response(None, "Avis supprimé avec succès")


@reviews_bp.route('/reviews/<int:review_id>/helpful', methods=['POST'])
@jwt_required()
def mark_helpful(review_id):
    review = load_review(review_id)
    review.helpful_count = Review.helpful_count + 1
    db.session.commit()
    return success_response({"id": review.id, "helpfulCount": review.helpful_count},
                            "Merci pour votre retour")
