from core.imports import Blueprint, request, func, or_, datetime, timedelta, Decimal
from core.errors import BadRequestError, NotFoundError
from core.extensions import db
from core.responses import bool_arg, int_arg, pagination_meta, success_response
from models.catalogModels import Category, Product, ProductStock, PRODUCT_STATUSES
from models.orderModels import OrderItem
from models.reviewModels import Review
from services.catalog import has_running_promotion, product_card, product_detail, promotion_product, rating_stats
from services.pricing import active_promotion, pricing_dict, product_pricing

catalog_bp = Blueprint('catalog', __name__)
categories_bp = Blueprint('categories', __name__)
promotions_bp = Blueprint('promotions', __name__)

MAX_PAGE_SIZE = 100
SORT_COLUMNS = {
    "price": Product.price,
    "createdAt": Product.created_at,
    "name": Product.name,
}
FEATURED_WINDOW = timedelta(days=30)


def decimal_arg(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return Decimal(raw)
    except ArithmeticError:
        raise BadRequestError(f"{name} doit être un nombre")


def paginate(query, page, limit):
    total = query.count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return rows, total


def filtered_products():
    """Apply the listing filters from the query string.

    Returns the SQL query plus the filters that depend on runtime pricing or
    JSON columns and are applied in Python.
    """
    query = Product.query

    status = request.args.get("status")
    if status:
        if status not in PRODUCT_STATUSES:
            raise BadRequestError("status invalide")
        query = query.filter(Product.status == status)
    else:
        query = query.filter(Product.status != "ARCHIVED")

    category_id = int_arg("categoryId", None)
    if category_id:
        query = query.filter(Product.category_id == category_id)
    seller_id = int_arg("sellerId", None)
    if seller_id:
        query = query.filter(Product.seller_id == seller_id)
    brand = request.args.get("brand")
    if brand:
        query = query.filter(Product.brand.ilike(f"%{brand}%"))

    min_price = decimal_arg("minPrice")
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    max_price = decimal_arg("maxPrice")
    if max_price is not None:
        query = query.filter(Product.price <= max_price)

    location = request.args.get("location") or request.args.get("region")
    in_stock = bool_arg("inStock")
    if location or in_stock is not None:
        query = query.join(ProductStock, ProductStock.product_id == Product.id)
        if location:
            query = query.filter(ProductStock.location.ilike(f"%{location}%"))
        if in_stock is True:
            query = query.filter(ProductStock.quantity > 0)
        elif in_stock is False:
            query = query.filter(ProductStock.quantity <= 0)

    sort_by = request.args.get("sortBy", "createdAt")
    if sort_by not in SORT_COLUMNS:
        raise BadRequestError("sortBy doit être price, createdAt ou name")
    column = SORT_COLUMNS[sort_by]
    sort_order = request.args.get("sortOrder", "desc").lower()
    query = query.order_by(column.asc() if sort_order == "asc" else column.desc(), Product.id)

    tags = [tag.strip().lower() for tag in request.args.get("tags", "").split(",") if tag.strip()]
    min_discount = decimal_arg("minDiscountPercentage")
    return query, tags, min_discount


def matches_runtime_filters(product, tags, min_discount):
    if tags:
        product_tags = {str(tag).lower() for tag in product.tags or []}
        if not product_tags.intersection(tags):
            return False
    if min_discount is not None:
        percentage = product_pricing(product).discount_percentage
        if percentage is None or percentage < float(min_discount):
            return False
    return True


@catalog_bp.route('', methods=['GET'])
@catalog_bp.route('/filter', methods=['GET'])
@catalog_bp.route('/sort', methods=['GET'])
def list_products():
    """
    List products with filters, sorting and pagination
    ---
    tags:
      - Catalog
    parameters:
      - name: page
        in: query
        type: integer
        default: 1
      - name: limit
        in: query
        type: integer
        default: 20
      - name: categoryId
        in: query
        type: integer
      - name: minPrice
        in: query
        type: number
      - name: maxPrice
        in: query
        type: number
      - name: location
        in: query
        type: string
      - name: inStock
        in: query
        type: boolean
      - name: sortBy
        in: query
        type: string
        enum: [price, createdAt, name]
      - name: sortOrder
        in: query
        type: string
        enum: [asc, desc]
      - name: tags
        in: query
        type: string
        description: Comma separated tags
      - name: minDiscountPercentage
        in: query
        type: number
    responses:
      200:
        description: Page of products with pricing
    """
    page = int_arg("page", 1)
    limit = int_arg("limit", 20, maximum=MAX_PAGE_SIZE)
    query, tags, min_discount = filtered_products()

    if tags or min_discount is not None:
        products = [p for p in query.all() if matches_runtime_filters(p, tags, min_discount)]
        total = len(products)
        products = products[(page - 1) * limit: page * limit]
    else:
        products, total = paginate(query, page, limit)

    return success_response(
        {"data": [product_card(p) for p in products], "meta": pagination_meta(total, page, limit)},
        "Produits récupérés avec succès",
    )


@catalog_bp.route('/<int:product_id>', methods=['GET'])
def get_product(product_id):
    product = db.session.get(Product, product_id)
    if not product or product.status == "ARCHIVED":
        raise NotFoundError("Produit non trouvé")

    published = Review.query.filter_by(product_id=product.id, is_published=True) \
        .order_by(Review.created_at.desc(), Review.id.desc()).all()
    total_sales = db.session.query(func.count(OrderItem.id)).filter(OrderItem.product_id == product.id).scalar()

    data = product_detail(product)
    data["reviews"] = [review.to_dict() for review in published[:10]]
    data["ratingStats"] = rating_stats(published)
    data["totalSales"] = total_sales or 0
    return success_response(data, "Produit récupéré avec succès")


def category_dict(category):
    data = category.to_dict()
    data["parent"] = category.parent.to_dict() if category.parent else None
    data["children"] = [child.to_dict() for child in category.children if child.is_active]
    data["productCount"] = Product.query.filter(
        Product.category_id == category.id, Product.status == "ACTIVE"
    ).count()
    return data


@catalog_bp.route('/categories', methods=['GET'])
@categories_bp.route('', methods=['GET'])
def list_categories():
    categories = Category.query.filter_by(is_active=True).order_by(Category.name).all()
    return success_response([category_dict(c) for c in categories], "Catégories récupérées avec succès")


@categories_bp.route('/<int:category_id>', methods=['GET'])
def get_category(category_id):
    category = db.session.get(Category, category_id)
    if not category or not category.is_active:
        raise NotFoundError("Catégorie non trouvée")
    return success_response(category_dict(category), "Catégorie récupérée avec succès")


@catalog_bp.route('/search', methods=['GET'])
def search_products():
    q = (request.args.get("q") or "").strip()
    if not q:
        raise BadRequestError("Le paramètre de recherche q est requis")
    page = int_arg("page", 1)
    limit = int_arg("limit", 20, maximum=MAX_PAGE_SIZE)

    pattern = f"%{q}%"
    query = Product.query.filter(
        Product.status != "ARCHIVED",
        or_(
            Product.name.ilike(pattern),
            Product.description.ilike(pattern),
            Product.short_description.ilike(pattern),
            Product.sku.ilike(pattern),
            db.cast(Product.tags, db.String).ilike(pattern),
        ),
    ).order_by(Product.created_at.desc(), Product.id)

    products, total = paginate(query, page, limit)
    return success_response(
        {"data": [product_card(p) for p in products], "meta": pagination_meta(total, page, limit), "query": q},
        "Résultats de recherche",
    )


@catalog_bp.route('/featured', methods=['GET'])
def featured_products():
    limit = int_arg("limit", 10, maximum=MAX_PAGE_SIZE)
    cutoff = datetime.utcnow() - FEATURED_WINDOW
    products = Product.query.filter(
        Product.status == "ACTIVE",
        or_(has_running_promotion(), Product.created_at >= cutoff),
    ).order_by(Product.created_at.desc(), Product.id.desc()).limit(limit).all()
    return success_response([product_card(p) for p in products], "Produits en vedette récupérés avec succès")


def promoted_products_page():
    page = int_arg("page", 1)
    limit = int_arg("limit", 20, maximum=MAX_PAGE_SIZE)
    query = Product.query.filter(Product.status == "ACTIVE", has_running_promotion())
    category_id = int_arg("categoryId", None)
    if category_id:
        query = query.filter(Product.category_id == category_id)
    products, total = paginate(query.order_by(Product.created_at.desc(), Product.id), page, limit)
    return success_response(
        {"data": [promotion_product(p) for p in products], "meta": pagination_meta(total, page, limit)},
        "Produits en promotion récupérés avec succès",
    )


@catalog_bp.route('/promotion', methods=['GET'])
def products_on_promotion():
    return promoted_products_page()


@promotions_bp.route('/products', methods=['GET'])
def list_promoted_products():
    return promoted_products_page()


@promotions_bp.route('/products/<int:product_id>', methods=['GET'])
def product_promotion(product_id):
    product = db.session.get(Product, product_id)
    if not product or product.status == "ARCHIVED":
        raise NotFoundError("Produit non trouvé")
    promotion = active_promotion(product)
    if not promotion:
        raise NotFoundError("Aucune promotion active pour ce produit")

    data = {
        "product": {"id": product.id, "name": product.name, "slug": product.slug, "image": product.primary_image},
        "promotion": promotion.to_dict(),
        **pricing_dict(product_pricing(product)),
    }
    return success_response(data, "Promotion récupérée avec succès")


@catalog_bp.route('/meilleursVente', methods=['GET'])
def best_sellers():
    limit = int_arg("limit", 10, maximum=MAX_PAGE_SIZE)
    sold = db.session.query(
        OrderItem.product_id.label("product_id"),
        func.sum(OrderItem.quantity).label("units"),
    ).group_by(OrderItem.product_id).subquery()
    units = func.coalesce(sold.c.units, 0)

    rows = db.session.query(Product, units) \
        .join(ProductStock, ProductStock.product_id == Product.id) \
        .outerjoin(sold, sold.c.product_id == Product.id) \
        .filter(Product.status == "ACTIVE", ProductStock.quantity > 0) \
        .order_by(units.desc(), Product.created_at.desc(), Product.id.desc()) \
        .limit(limit).all()

    data = []
    for product, total_sold in rows:
        card = product_card(product)
        card["totalSold"] = int(total_sold or 0)
        data.append(card)
    return success_response(data, "Meilleures ventes récupérées avec succès")
