"""Promotion-aware pricing shared by the cart, catalog, orders, favourites and seller views."""
from collections import namedtuple
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Pricing = namedtuple(
    "Pricing",
    ["original_price", "final_price", "discount_amount", "discount_percentage", "has_promotion"],
)


def to_money(value):
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def as_number(value):
    """Render a Decimal amount as a JSON number."""
    if value is None:
        return None
    value = to_money(value)
    return int(value) if value == value.to_integral_value() else float(value)


def active_promotion(product, now=None):
    """Running promotion with the largest discount value, if any."""
    now = now or datetime.utcnow()
    running = [p for p in product.promotions if p.is_running(now)]
    if not running:
        return None
    return max(running, key=lambda p: to_money(p.discount_value))


def compute_price(base_price, promotion=None):
    price = to_money(base_price)
    if promotion is None:
        return Pricing(price, price, ZERO, None, False)

    value = to_money(promotion.discount_value)
    if promotion.discount_type == "PERCENTAGE":
        discount = to_money(price * value / 100)
        return Pricing(price, price - discount, discount, float(value), True)

    # FIXED_AMOUNT: the final price never drops below zero
    final = max(ZERO, price - value)
    percentage = float(value / price * 100) if price > 0 else None
    return Pricing(price, final, price - final, percentage, True)


def product_pricing(product, now=None):
    return compute_price(product.price, active_promotion(product, now))


def pricing_dict(pricing):
    return {
        "originalPrice": as_number(pricing.original_price),
        "finalPrice": as_number(pricing.final_price),
        "discountAmount": as_number(pricing.discount_amount),
        "discountPercentage": round(pricing.discount_percentage, 2) if pricing.discount_percentage is not None else None,
        "hasPromotion": pricing.has_promotion,
    }
