from datetime import datetime

from sqlalchemy import and_

from models.catalogModels import Product, Promotion
from services.pricing import active_promotion, as_number, pricing_dict, product_pricing


def has_running_promotion(now=None):
    """SQL filter: the product has at least one promotion in effect at ``now``."""
    now = now or datetime.utcnow()
    return Product.promotions.any(and_(
        Promotion.is_active.is_(True),
        Promotion.start_date <= now,
        Promotion.end_date >= now,
    ))


def stock_summary(stock):
    if stock is None:
        return None
    return {
        "quantity": stock.quantity,
        "reservedQuantity": stock.reserved_quantity,
        "availableQuantity": stock.available,
        "inStock": stock.quantity > 0,
        "location": stock.location,
    }


def product_card(product, image_limit=5):
    """Public listing view of a product with its current price."""
    pricing = product_pricing(product)
    return {
        "id": product.id,
        "name": product.name,
        "slug": product.slug,
        "shortDescription": product.short_description,
        "sku": product.sku,
        "brand": product.brand,
        "status": product.status,
        "price": as_number(pricing.original_price),
        **pricing_dict(pricing),
        "compareAtPrice": as_number(product.compare_at_price),
        "tags": product.tags or [],
        "category": product.category.to_dict() if product.category else None,
        "images": [image.to_dict() for image in product.images[:image_limit]],
        "stock": stock_summary(product.stock),
        "seller": product.seller.public_dict() if product.seller else None,
        "createdAt": product.created_at.isoformat() if product.created_at else None,
    }


def product_detail(product):
    data = product_card(product, image_limit=len(product.images))
    data.update({
        "description": product.description,
        "weight": as_number(product.weight),
        "length": as_number(product.length),
        "width": as_number(product.width),
        "height": as_number(product.height),
        "isDigital": product.is_digital,
        "requiresShipping": product.requires_shipping,
        "updatedAt": product.updated_at.isoformat() if product.updated_at else None,
    })
    return data


def seller_product(product):
    """Seller-side view: includes cost price, inventory flags and alert settings."""
    data = product_detail(product)
    data.update({
        "costPrice": as_number(product.cost_price),
        "trackInventory": product.track_inventory,
        "allowBackorder": product.allow_backorder,
        "stock": product.stock.to_dict() if product.stock else None,
        "inventoryAlert": product.inventory_alert.to_dict() if product.inventory_alert else None,
    })
    return data


def rating_stats(reviews):
    distribution = {rating: 0 for rating in (5, 4, 3, 2, 1)}
    for review in reviews:
        distribution[review.rating] += 1
    total = len(reviews)
    average = round(sum(r.rating for r in reviews) / total, 1) if total else 0
    return {
        "averageRating": average,
        "totalReviews": total,
        "ratingDistribution": distribution,
    }


def promotion_product(product):
    """Listing view for promoted products, with the promotion that sets the price."""
    data = product_card(product)
    promotion = active_promotion(product)
    data["promotion"] = promotion.to_dict() if promotion else None
    return data
