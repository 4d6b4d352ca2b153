import logging
import unicodedata

from core.imports import Blueprint, request, datetime, Decimal, uuid, re
from core.auth import SELLER_ROLES, current_user_id, roles_required
from core.errors import BadRequestError, ConflictError, NotFoundError
from core.extensions import db, media
from core.responses import bool_arg, get_json, int_arg, pagination_meta, success_response
from models.cartModels import CartItem
from models.catalogModels import (Category, InventoryAlert, Product, ProductImage, ProductStock, Promotion,
                                  PRODUCT_STATUSES, PROMOTION_TYPES)
from models.orderModels import OrderItem
from services.catalog import seller_product
from services.media import extract_public_id
from services.pricing import ZERO, as_number, pricing_dict, product_pricing, to_money

seller_bp = Blueprint('seller', __name__)
logger = logging.getLogger(__name__)

DEFAULT_LOW_STOCK_THRESHOLD = 10
# stock valuation when the seller has not recorded a cost price
COST_RATIO = Decimal("0.7")

TEXT_FIELDS = (("name", "name"), ("description", "description"), ("shortDescription", "short_description"),
               ("brand", "brand"))
MONEY_FIELDS = (("price", "price"), ("compareAtPrice", "compare_at_price"), ("costPrice", "cost_price"),
                ("weight", "weight"), ("length", "length"), ("width", "width"), ("height", "height"))
FLAG_FIELDS = (("isDigital", "is_digital"), ("requiresShipping", "requires_shipping"),
               ("trackInventory", "track_inventory"), ("allowBackorder", "allow_backorder"))


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------

def slugify(value):
    value = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value).strip("-").lower()
    return value or "produit"


def unique_slug(name):
    slug = slugify(name)
    if Product.query.filter_by(slug=slug).first():
        slug = f"{slug}-{uuid.uuid4().hex[:8]}"
    return slug


def decimal_value(value, field):
    if isinstance(value, bool):
        raise BadRequestError(f"{field} doit être un nombre")
    try:
        number = Decimal(str(value))
    except ArithmeticError:
        raise BadRequestError(f"{field} doit être un nombre")
    if not number.is_finite() or number < 0:
        raise BadRequestError(f"{field} doit être un nombre positif")
    return number


def non_negative_int(value, field):
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise BadRequestError(f"{field} doit être un entier positif ou nul")
    return value


def parse_datetime(value, field):
    if not value:
        raise BadRequestError(f"{field} est requis")
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise BadRequestError(f"{field} doit être une date ISO 8601 valide")
    if parsed.tzinfo is not None:
        # stored naive, in UTC
        parsed = (parsed - parsed.utcoffset()).replace(tzinfo=None)
    return parsed


def owned_product(product_id):
    product = Product.query.filter_by(id=product_id, seller_id=current_user_id()).first()
    if not product:
        raise NotFoundError("Produit non trouvé")
    return product


def existing_category(category_id):
    category = db.session.get(Category, category_id) if isinstance(category_id, int) else None
    if not category:
        raise NotFoundError("Catégorie non trouvée")
    return category


def apply_product_fields(product, data):
    for key, attr in TEXT_FIELDS:
        if key in data:
            if key in ("name", "description") and not data[key]:
                raise BadRequestError(f"{key} ne peut pas être vide")
            setattr(product, attr, data[key])
    for key, attr in MONEY_FIELDS:
        if key in data:
            setattr(product, attr, None if data[key] is None and key != "price"
                    else decimal_value(data[key], key))
    for key, attr in FLAG_FIELDS:
        if key in data and data[key] is not None:
            setattr(product, attr, bool(data[key]))
    if "tags" in data:
        tags = data["tags"] or []
        if not isinstance(tags, list):
            raise BadRequestError("tags doit être une liste")
        product.tags = [str(tag) for tag in tags]
    if "status" in data:
        if data["status"] not in PRODUCT_STATUSES:
            raise BadRequestError("status invalide")
        product.status = data["status"]
    if "sku" in data and data["sku"] != product.sku:
        if data["sku"] and Product.query.filter(Product.sku == data["sku"], Product.id != product.id).first():
            raise ConflictError("Un produit avec ce SKU existe déjà")
        product.sku = data["sku"] or None


def effective_threshold(product):
    alert = product.inventory_alert
    if alert is not None and alert.is_active:
        return alert.threshold
    return product.stock.low_stock_threshold if product.stock else DEFAULT_LOW_STOCK_THRESHOLD


def inventory_row(product):
    stock = product.stock
    return {
        "productId": product.id,
        "name": product.name,
        "sku": product.sku,
        "status": product.status,
        "image": product.primary_image,
        "quantity": stock.quantity if stock else 0,
        "reservedQuantity": stock.reserved_quantity if stock else 0,
        "availableQuantity": stock.available if stock else 0,
        "lowStockThreshold": effective_threshold(product),
        "location": stock.location if stock else None,
    }


def set_stock_quantity(product, quantity):
    stock = product.stock
    if stock is None:
        stock = ProductStock(product_id=product.id, quantity=0, reserved_quantity=0,
                             low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD)
        product.stock = stock
    if quantity < (stock.reserved_quantity or 0):
        raise BadRequestError(
            f"La quantité ne peut pas être inférieure à la quantité réservée ({stock.reserved_quantity})"
        )
    stock.quantity = quantity
    return stock


def seller_products_query():
    return Product.query.filter(Product.seller_id == current_user_id(), Product.status != "ARCHIVED")


# ---------------------------------------------------------------------------
# products
# ---------------------------------------------------------------------------

@seller_bp.route('/products', methods=['GET'])
@roles_required(*SELLER_ROLES)
def list_products():
    page = int_arg("page", 1)
    limit = int_arg("limit", 20, maximum=100)
    query = Product.query.filter_by(seller_id=current_user_id())
    status = request.args.get("status")
    if status:
        query = query.filter(Product.status == status)
    total = query.count()
    products = query.order_by(Product.created_at.desc(), Product.id.desc()) \
        .offset((page - 1) * limit).limit(limit).all()
    return success_response(
        {"data": [seller_product(p) for p in products], "meta": pagination_meta(total, page, limit)},
        "Produits récupérés avec succès",
    )


@seller_bp.route('/products', methods=['POST'])
@roles_required(*SELLER_ROLES)
def create_product():
    """
    Create a product
    ---
    tags:
      - Seller
    security:
      - Bearer: []
    parameters:
      - name: body
        in: body
        required: true
        schema:
          type: object
          required:
            - name
            - description
            - price
            - categoryId
          properties:
            name:
              type: string
              example: "Boubou brodé"
            description:
              type: string
            price:
              type: number
              example: 10000
            categoryId:
              type: integer
            sku:
              type: string
            tags:
              type: array
              items:
                type: string
            status:
              type: string
              enum: [DRAFT, ACTIVE, INACTIVE, OUT_OF_STOCK, ARCHIVED]
            trackInventory:
              type: boolean
            quantity:
              type: integer
              description: Initial stock
    responses:
      201:
        description: Product created with its stock row
      404:
        description: Category not found
      409:
        description: SKU already used
    """
    data = get_json()
    for field in ("name", "description", "price", "categoryId"):
        if data.get(field) in (None, ""):
            raise BadRequestError(f"{field} est requis")
    category = existing_category(data.get("categoryId"))

    product = Product(seller_id=current_user_id(), category_id=category.id, slug=unique_slug(data["name"]),
                      status="DRAFT", tags=[])
    apply_product_fields(product, data)
    db.session.add(product)

    if product.track_inventory is not False:
        product.stock = ProductStock(
            quantity=non_negative_int(data.get("quantity", 0), "quantity"),
            reserved_quantity=0,
            low_stock_threshold=non_negative_int(data.get("lowStockThreshold", DEFAULT_LOW_STOCK_THRESHOLD),
                                                 "lowStockThreshold"),
            location=data.get("location"),
        )

    db.session.commit()
    logger.info("Product %s created by seller %s", product.id, product.seller_id)
    return success_response(seller_product(product), "Produit créé avec succès", 201)


@seller_bp.route('/products/<int:product_id>', methods=['GET'])
@roles_required(*SELLER_ROLES)
def get_product(product_id):
    return success_response(seller_product(owned_product(product_id)), "Produit récupéré avec succès")


@seller_bp.route('/products/<int:product_id>', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def update_product(product_id):
    product = owned_product(product_id)
    data = get_json()
    if "categoryId" in data:
        product.category_id = existing_category(data["categoryId"]).id
    if data.get("name") and data["name"] != product.name:
        product.slug = unique_slug(data["name"])
    apply_product_fields(product, data)
    db.session.commit()
    return success_response(seller_product(product), "Produit mis à jour avec succès")


@seller_bp.route('/products/<int:product_id>', methods=['DELETE'])
@roles_required(*SELLER_ROLES)
def delete_product(product_id):
    """
    Delete a product

    A product that appears in orders is archived instead, so order history
    keeps pointing at it.
    ---
    tags:
      - Seller
    security:
      - Bearer: []
    responses:
      200:
        description: Product deleted or archived
      404:
        description: Product not found
    """
    product = owned_product(product_id)
    if OrderItem.query.filter_by(product_id=product.id).first():
        product.status = "ARCHIVED"
        db.session.commit()
        return success_response({"id": product.id, "archived": True},
                                "Produit archivé car il figure dans des commandes")

    public_ids = [image.cloudinary_id or extract_public_id(image.url) for image in product.images]
    CartItem.query.filter_by(product_id=product.id).delete()
    db.session.delete(product)
    db.session.commit()
    for public_id in public_ids:
        media.delete_image(public_id)
    return success_response({"id": product_id, "archived": False}, "Produit supprimé avec succès")


@seller_bp.route('/products/<int:product_id>/status', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def update_status(product_id):
    product = owned_product(product_id)
    status = get_json().get("status")
    if status not in PRODUCT_STATUSES:
        raise BadRequestError("status invalide")
    product.status = status
    db.session.commit()
    return success_response(seller_product(product), "Statut du produit mis à jour")


@seller_bp.route('/products/<int:product_id>/category', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def update_category(product_id):
    product = owned_product(product_id)
    product.category_id = existing_category(get_json().get("categoryId")).id
    db.session.commit()
    return success_response(seller_product(product), "Catégorie du produit mise à jour")


@seller_bp.route('/products/by-category', methods=['GET'])
@roles_required(*SELLER_ROLES)
def products_by_category():
    groups = {}
    for product in seller_products_query().order_by(Product.name).all():
        group = groups.setdefault(product.category_id, {
            "category": product.category.to_dict() if product.category else None,
            "products": [],
        })
        group["products"].append({
            "id": product.id,
            "name": product.name,
            "status": product.status,
            "image": product.primary_image,
            **pricing_dict(product_pricing(product)),
        })
    data = [dict(group, count=len(group["products"])) for group in groups.values()]
    return success_response(data, "Produits par catégorie")


# ---------------------------------------------------------------------------
# images
# ---------------------------------------------------------------------------

def owned_image(product, image_id):
    image = ProductImage.query.filter_by(id=image_id, product_id=product.id).first()
    if not image:
        raise NotFoundError("Image non trouvée")
    return image


@seller_bp.route('/products/<int:product_id>/images', methods=['POST'])
@roles_required(*SELLER_ROLES)
def upload_images(product_id):
    product = owned_product(product_id)
    files = request.files.getlist("images")
    if not files:
        raise BadRequestError("Aucune image fournie")

    position = max((image.position for image in product.images), default=-1) + 1
    has_primary = any(image.is_primary for image in product.images)
    created = []
    for file in files:
        url, public_id = media.upload_image(file, f"products/{product.id}")
        image = ProductImage(product_id=product.id, url=url, cloudinary_id=public_id, alt=product.name,
                             position=position, is_primary=not has_primary)
        has_primary = True
        position += 1
        db.session.add(image)
        created.append(image)
    db.session.commit()
    return success_response([image.to_dict() for image in created], "Images ajoutées avec succès", 201)


@seller_bp.route('/products/<int:product_id>/images/<int:image_id>', methods=['DELETE'])
@roles_required(*SELLER_ROLES)
def delete_image(product_id, image_id):
    product = owned_product(product_id)
    image = owned_image(product, image_id)
    public_id = image.cloudinary_id or extract_public_id(image.url)
    was_primary = image.is_primary

    db.session.delete(image)
    db.session.flush()
    if was_primary:
        remaining = ProductImage.query.filter_by(product_id=product.id).order_by(ProductImage.position).first()
        if remaining:
            remaining.is_primary = True
    db.session.commit()

    media.delete_image(public_id)
    return success_response(None, "Image supprimée avec succès")


@seller_bp.route('/products/<int:product_id>/images/<int:image_id>/order', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def reorder_image(product_id, image_id):
    image = owned_image(owned_product(product_id), image_id)
    image.position = non_negative_int(get_json().get("order"), "order")
    db.session.commit()
    return success_response(image.to_dict(), "Ordre de l'image mis à jour")


@seller_bp.route('/products/<int:product_id>/images/<int:image_id>/primary', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def set_primary_image(product_id, image_id):
    product = owned_product(product_id)
    image = owned_image(product, image_id)
    for other in product.images:
        other.is_primary = other.id == image.id
    db.session.commit()
    return success_response(image.to_dict(), "Image principale définie")


# ---------------------------------------------------------------------------
# stock and inventory
# ---------------------------------------------------------------------------

@seller_bp.route('/products/<int:product_id>/stock', methods=['GET'])
@roles_required(*SELLER_ROLES)
def get_stock(product_id):
    product = owned_product(product_id)
    if product.stock is None:
        raise NotFoundError("Stock non trouvé pour ce produit")
    return success_response(product.stock.to_dict(), "Stock récupéré avec succès")


@seller_bp.route('/products/<int:product_id>/stock', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def update_stock(product_id):
    product = owned_product(product_id)
    data = get_json()
    stock = product.stock or ProductStock(product_id=product.id, quantity=0, reserved_quantity=0,
                                          low_stock_threshold=DEFAULT_LOW_STOCK_THRESHOLD)
    quantity = non_negative_int(data.get("quantity", stock.quantity), "quantity")
    reserved = non_negative_int(data.get("reservedQuantity", stock.reserved_quantity), "reservedQuantity")
    if reserved > quantity:
        raise BadRequestError("La quantité réservée ne peut pas dépasser la quantité en stock")

    stock.quantity = quantity
    stock.reserved_quantity = reserved
    if "lowStockThreshold" in data:
        stock.low_stock_threshold = non_negative_int(data["lowStockThreshold"], "lowStockThreshold")
    if "location" in data:
        stock.location = data["location"]
    product.stock = stock
    db.session.commit()
    return success_response(stock.to_dict(), "Stock mis à jour avec succès")


@seller_bp.route('/inventory', methods=['GET'])
@roles_required(*SELLER_ROLES)
def inventory_summary():
    products = seller_products_query().all()
    total_value = ZERO
    total_quantity = 0
    low_stock = 0
    out_of_stock = 0
    for product in products:
        quantity = product.stock.quantity if product.stock else 0
        unit_cost = to_money(product.cost_price) if product.cost_price is not None \
            else to_money(product.price) * COST_RATIO
        total_value += unit_cost * quantity
        total_quantity += quantity
        if quantity <= 0:
            out_of_stock += 1
        elif quantity <= effective_threshold(product):
            low_stock += 1

    return success_response({
        "totalProducts": len(products),
        "totalQuantity": total_quantity,
        "totalValue": as_number(total_value),
        "lowStockCount": low_stock,
        "outOfStockCount": out_of_stock,
        "products": [inventory_row(p) for p in products],
    }, "Inventaire récupéré avec succès")


@seller_bp.route('/inventory/bulk-update', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def bulk_update_inventory():
    updates = get_json().get("updates")
    if not isinstance(updates, list) or not updates:
        raise BadRequestError("updates doit être une liste non vide")

    results = []
    for entry in updates:
        entry = entry if isinstance(entry, dict) else {}
        product_id = entry.get("productId")
        try:
            product = owned_product(product_id)
            stock = set_stock_quantity(product, non_negative_int(entry.get("quantity"), "quantity"))
            results.append({"productId": product_id, "success": True, "quantity": stock.quantity})
        except (BadRequestError, NotFoundError) as e:
            results.append({"productId": product_id, "success": False, "message": e.message})
    db.session.commit()

    succeeded = sum(1 for r in results if r["success"])
    return success_response(
        {"results": results, "updated": succeeded, "failed": len(results) - succeeded},
        "Mise à jour groupée terminée",
    )


@seller_bp.route('/inventory/low-stock', methods=['GET'])
@roles_required(*SELLER_ROLES)
def low_stock():
    products = [p for p in seller_products_query().all()
                if (p.stock.quantity if p.stock else 0) <= effective_threshold(p)]
    return success_response([inventory_row(p) for p in products], "Produits en stock faible")


@seller_bp.route('/products/<int:product_id>/inventory-alert', methods=['POST'])
@roles_required(*SELLER_ROLES)
def set_inventory_alert(product_id):
    product = owned_product(product_id)
    data = get_json()
    threshold = non_negative_int(data.get("threshold"), "threshold")

    alert = product.inventory_alert or InventoryAlert(product_id=product.id)
    alert.threshold = threshold
    for key, attr in (("isActive", "is_active"), ("notifyEmail", "notify_email"), ("notifySms", "notify_sms")):
        if data.get(key) is not None:
            setattr(alert, attr, bool(data[key]))
    product.inventory_alert = alert
    db.session.commit()
    return success_response(alert.to_dict(), "Alerte de stock enregistrée")


# ---------------------------------------------------------------------------
# promotions
# ---------------------------------------------------------------------------

def owned_promotion(promotion_id):
    promotion = Promotion.query.join(Product).filter(
        Promotion.id == promotion_id, Product.seller_id == current_user_id()
    ).first()
    if not promotion:
        raise NotFoundError("Promotion non trouvée")
    return promotion


def validate_discount(discount_type, value):
    if discount_type not in PROMOTION_TYPES:
        raise BadRequestError("discountType doit être PERCENTAGE ou FIXED_AMOUNT")
    value = decimal_value(value, "discountValue")
    if discount_type == "PERCENTAGE" and value > 100:
        raise BadRequestError("Le pourcentage de réduction doit être compris entre 0 et 100")
    return value


def check_overlap(product_id, start, end, exclude_id=None):
    query = Promotion.query.filter(
        Promotion.product_id == product_id,
        Promotion.is_active.is_(True),
        Promotion.start_date < end,
        Promotion.end_date > start,
    )
    if exclude_id is not None:
        query = query.filter(Promotion.id != exclude_id)
    if query.first():
        raise ConflictError("Une promotion active existe déjà sur cette période pour ce produit")


def promotion_dict(promotion):
    product = promotion.product
    data = promotion.to_dict()
    data["isRunning"] = promotion.is_running()
    data["product"] = {
        "id": product.id,
        "name": product.name,
        "image": product.primary_image,
        **pricing_dict(product_pricing(product)),
    }
    return data


@seller_bp.route('/products/promotions', methods=['POST'])
@roles_required(*SELLER_ROLES)
def create_promotion():
    """
    Create a promotion on one of the seller's products
    ---
    tags:
      - Seller
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
            - discountType
            - discountValue
            - startDate
            - endDate
          properties:
            productId:
              type: integer
            title:
              type: string
            discountType:
              type: string
              enum: [PERCENTAGE, FIXED_AMOUNT]
            discountValue:
              type: number
              example: 20
            startDate:
              type: string
              format: date-time
            endDate:
              type: string
              format: date-time
    responses:
      201:
        description: Promotion created
      400:
        description: Invalid dates or discount
      409:
        description: Overlaps an active promotion on the same product
    """
    data = get_json()
    product = owned_product(data.get("productId"))
    value = validate_discount(data.get("discountType"), data.get("discountValue"))
    start = parse_datetime(data.get("startDate"), "startDate")
    end = parse_datetime(data.get("endDate"), "endDate")
    if end <= start:
        raise BadRequestError("La date de fin doit être postérieure à la date de début")

    is_active = data.get("isActive", True) is not False
    if is_active:
        check_overlap(product.id, start, end)

    promotion = Promotion(product_id=product.id, title=data.get("title"), description=data.get("description"),
                          discount_type=data["discountType"], discount_value=value,
                          start_date=start, end_date=end, is_active=is_active)
    db.session.add(promotion)
    db.session.commit()
    return success_response(promotion_dict(promotion), "Promotion créée avec succès", 201)


@seller_bp.route('/products/promotions', methods=['GET'])
@roles_required(*SELLER_ROLES)
def list_promotions():
    query = Promotion.query.join(Product).filter(Product.seller_id == current_user_id())
    if not bool_arg("includeExpired", False):
        query = query.filter(Promotion.end_date >= datetime.utcnow())
    promotions = query.order_by(Promotion.start_date.desc()).all()
    return success_response([promotion_dict(p) for p in promotions], "Promotions récupérées avec succès")


@seller_bp.route('/products/promotions/active', methods=['GET'])
@roles_required(*SELLER_ROLES)
def active_promotions():
    now = datetime.utcnow()
    promotions = Promotion.query.join(Product).filter(
        Product.seller_id == current_user_id(),
        Promotion.is_active.is_(True),
        Promotion.start_date <= now,
        Promotion.end_date >= now,
    ).order_by(Promotion.end_date).all()
    return success_response([promotion_dict(p) for p in promotions], "Promotions actives récupérées")


@seller_bp.route('/products/promotions/<int:promotion_id>', methods=['GET'])
@roles_required(*SELLER_ROLES)
def get_promotion(promotion_id):
    return success_response(promotion_dict(owned_promotion(promotion_id)), "Promotion récupérée avec succès")


@seller_bp.route('/products/<int:product_id>/promotions', methods=['GET'])
@roles_required(*SELLER_ROLES)
def product_promotions(product_id):
    product = owned_product(product_id)
    promotions = Promotion.query.filter_by(product_id=product.id).order_by(Promotion.start_date.desc()).all()
    return success_response([promotion_dict(p) for p in promotions], "Promotions du produit récupérées")


@seller_bp.route('/products/promotions/<int:promotion_id>', methods=['PUT'])
@roles_required(*SELLER_ROLES)
def update_promotion(promotion_id):
    promotion = owned_promotion(promotion_id)
    data = get_json()

    discount_type = data.get("discountType", promotion.discount_type)
    value = validate_discount(discount_type, data.get("discountValue", promotion.discount_value))
    start = parse_datetime(data["startDate"], "startDate") if "startDate" in data else promotion.start_date
    end = parse_datetime(data["endDate"], "endDate") if "endDate" in data else promotion.end_date
    if end <= start:
        raise BadRequestError("La date de fin doit être postérieure à la date de début")
    is_active = bool(data["isActive"]) if data.get("isActive") is not None else promotion.is_active
    if is_active:
        check_overlap(promotion.product_id, start, end, exclude_id=promotion.id)

    promotion.discount_type = discount_type
    promotion.discount_value = value
    promotion.start_date = start
    promotion.end_date = end
    promotion.is_active = is_active
    for key in ("title", "description"):
        if key in data:
            setattr(promotion, key, data[key])
    db.session.commit()
    return success_response(promotion_dict(promotion), "Promotion mise à jour avec succès")


@seller_bp.route('/products/promotions/<int:promotion_id>', methods=['DELETE'])
@roles_required(*SELLER_ROLES)
def delete_promotion(promotion_id):
    promotion = owned_promotion(promotion_id)
    db.session.delete(promotion)
    db.session.commit()
    return success_response(None, "Promotion supprimée avec succès")
