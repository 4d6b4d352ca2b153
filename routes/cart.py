from core.imports import Blueprint, jwt_required
from core.auth import current_user_id
from core.errors import BadRequestError, NotFoundError
from core.extensions import db
from core.responses import get_json, success_response
from models.cartModels import Cart, CartItem
from models.catalogModels import Product
from services.pricing import ZERO, as_number, pricing_dict, product_pricing

cart_bp = Blueprint("cart", __name__)


def get_or_create_cart(user_id):
    cart = Cart.query.filter_by(user_id=user_id).first()
    if not cart:
        cart = Cart(user_id=user_id)
        db.session.add(cart)
        db.session.commit()
    return cart


def positive_quantity(value):
    if not isinstance(value, int) or isinstance(value, bool) or value < 1:
        raise BadRequestError("La quantité doit être au moins 1")
    return value


def check_stock(product, quantity):
    if product.track_inventory and product.stock is not None:
        available = product.stock.available
        if quantity > available:
            raise BadRequestError(f"Stock insuffisant. Quantité disponible: {available}")


def cart_item_dict(item):
    product = item.product
    pricing = product_pricing(product)
    return {
        "id": item.id,
        "productId": product.id,
        "quantity": item.quantity,
        "product": {
            "id": product.id,
            "name": product.name,
            "slug": product.slug,
            "sku": product.sku,
            "status": product.status,
            "image": product.primary_image,
            "availableStock": product.stock.available if product.stock else None,
        },
        "pricing": pricing_dict(pricing),
        "subtotal": as_number(pricing.final_price * item.quantity),
    }


def cart_totals(cart):
    subtotal = ZERO
    item_count = 0
    for item in cart.cart_items:
        subtotal += product_pricing(item.product).final_price * item.quantity
        item_count += item.quantity
    return {"subtotal": as_number(subtotal), "total": as_number(subtotal), "itemCount": item_count}


def cart_dict(cart):
    data = {"id": cart.id, "items": [cart_item_dict(item) for item in cart.cart_items]}
    data.update(cart_totals(cart))
    return data


def owned_item(item_id, user_id):
    item = CartItem.query.join(Cart).filter(CartItem.id == item_id, Cart.user_id == user_id).first()
    if not item:
        raise NotFoundError("Article du panier non trouvé")
    return item


@cart_bp.route('', methods=['GET'])
@jwt_required()
def get_cart():
    """
    Get the current user's shopping cart
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    parameters:
      - name: Authorization
        in: header
        description: "JWT token as: Bearer <your_token>"
        required: true
        type: string
    responses:
      200:
        description: Cart with priced items and totals
        schema:
          type: object
          properties:
            data:
              type: object
              properties:
                items:
                  type: array
                  items:
                    type: object
                subtotal:
                  type: number
                  example: 16000
                total:
                  type: number
                  example: 16000
                itemCount:
                  type: integer
                  example: 2
    """
    cart = get_or_create_cart(current_user_id())
    return success_response(cart_dict(cart), "Panier récupéré avec succès")


@cart_bp.route('/items', methods=['POST'])
@jwt_required()
def add_to_cart():
    """
    Add a product to the cart
    ---
    tags:
      - Cart
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - productId
          properties:
            productId:
              type: integer
              example: 1
            quantity:
              type: integer
              example: 2
    responses:
      201:
        description: Item added or merged with the existing line
      400:
        description: Product unavailable or insufficient stock
      404:
        description: Product not found
    """
    data = get_json()
    product_id = data.get("productId")
    quantity = positive_quantity(data.get("quantity", 1))

    product = db.session.get(Product, product_id) if isinstance(product_id, int) else None
    if not product:
        raise NotFoundError("Produit non trouvé")
    if product.status != "ACTIVE":
        raise BadRequestError("Ce produit n'est pas disponible")

    cart = get_or_create_cart(current_user_id())
    item = CartItem.query.filter_by(cart_id=cart.id, product_id=product.id).first()
    new_quantity = quantity + (item.quantity if item else 0)
    check_stock(product, new_quantity)

    if item:
        item.quantity = new_quantity
    else:
        item = CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity)
        db.session.add(item)
    db.session.commit()

    return success_response(cart_dict(cart), "Produit ajouté au panier", 201)


@cart_bp.route('/items/<int:item_id>', methods=['PUT'])
@jwt_required()
def update_cart_item(item_id):
    user_id = current_user_id()
    item = owned_item(item_id, user_id)
    quantity = positive_quantity(get_json().get("quantity"))
    check_stock(item.product, quantity)

    item.quantity = quantity
    db.session.commit()
    return success_response(cart_dict(item.cart), "Quantité mise à jour")


@cart_bp.route('/items/<int:item_id>', methods=['DELETE'])
@jwt_required()
def remove_cart_item(item_id):
    item = owned_item(item_id, current_user_id())
    cart = item.cart
    db.session.delete(item)
    db.session.commit()
    return success_response(cart_dict(cart), "Produit retiré du panier")


@cart_bp.route('', methods=['DELETE'])
@jwt_required()
def clear_cart():
    cart = get_or_create_cart(current_user_id())
    for item in list(cart.cart_items):
        db.session.delete(item)
    db.session.commit()
    return success_response(cart_dict(cart), "Panier vidé")


@cart_bp.route('/total', methods=['GET'])
@jwt_required()
def cart_total():
    cart = get_or_create_cart(current_user_id())
    return success_response(cart_totals(cart), "Total du panier")
