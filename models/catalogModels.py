from core.extensions import db
from core.imports import datetime

PRODUCT_STATUSES = ("DRAFT", "ACTIVE", "INACTIVE", "OUT_OF_STOCK", "ARCHIVED")
PROMOTION_TYPES = ("PERCENTAGE", "FIXED_AMOUNT")


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    image = db.Column(db.String(500), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    parent = db.relationship("Category", remote_side=[id], backref="children")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "image": self.image,
        }


class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False)

    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(255), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=False)
    short_description = db.Column(db.String(500), nullable=True)
    sku = db.Column(db.String(100), unique=True, nullable=True)
    brand = db.Column(db.String(100), nullable=True)

    price = db.Column(db.Numeric(12, 2), nullable=False)
    compare_at_price = db.Column(db.Numeric(12, 2), nullable=True)
    cost_price = db.Column(db.Numeric(12, 2), nullable=True)
    weight = db.Column(db.Numeric(10, 3), nullable=True)
    length = db.Column(db.Numeric(10, 2), nullable=True)
    width = db.Column(db.Numeric(10, 2), nullable=True)
    height = db.Column(db.Numeric(10, 2), nullable=True)
    tags = db.Column(db.JSON, nullable=False, default=list)

    is_digital = db.Column(db.Boolean, nullable=False, default=False)
    requires_shipping = db.Column(db.Boolean, nullable=False, default=True)
    track_inventory = db.Column(db.Boolean, nullable=False, default=True)
    allow_backorder = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(20), nullable=False, default="DRAFT", index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = db.relationship("Category", backref="products")
    seller = db.relationship("User", backref="products")
    images = db.relationship("ProductImage", backref="product", cascade="all, delete-orphan",
                             order_by="ProductImage.position")
    stock = db.relationship("ProductStock", backref="product", uselist=False, cascade="all, delete-orphan")
    promotions = db.relationship("Promotion", backref="product", cascade="all, delete-orphan")
    inventory_alert = db.relationship("InventoryAlert", backref="product", uselist=False,
                                      cascade="all, delete-orphan")

    @property
    def primary_image(self):
        for image in self.images:
            if image.is_primary:
                return image.url
        return self.images[0].url if self.images else None


class ProductImage(db.Model):
    __tablename__ = "product_images"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    url = db.Column(db.String(500), nullable=False)
    cloudinary_id = db.Column(db.String(255), nullable=True)
    alt = db.Column(db.String(255), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=0)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "url": self.url,
            "alt": self.alt,
            "order": self.position,
            "isPrimary": self.is_primary,
        }


class ProductStock(db.Model):
    __tablename__ = "product_stocks"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), unique=True, nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    reserved_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    location = db.Column(db.String(200), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def available(self):
        return self.quantity - self.reserved_quantity

    def to_dict(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "reservedQuantity": self.reserved_quantity,
            "availableQuantity": self.available,
            "lowStockThreshold": self.low_stock_threshold,
            "location": self.location,
            "inStock": self.quantity > 0,
        }


class Promotion(db.Model):
    __tablename__ = "product_promotions"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)
    discount_type = db.Column(db.String(20), nullable=False)  # PERCENTAGE, FIXED_AMOUNT
    discount_value = db.Column(db.Numeric(12, 2), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def is_running(self, now=None):
        now = now or datetime.utcnow()
        return self.is_active and self.start_date <= now <= self.end_date

    def to_dict(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "title": self.title,
            "description": self.description,
            "discountType": self.discount_type,
            "discountValue": float(self.discount_value),
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "isActive": self.is_active,
        }


class InventoryAlert(db.Model):
    __tablename__ = "inventory_alerts"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), unique=True, nullable=False)
    threshold = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    notify_email = db.Column(db.Boolean, nullable=False, default=True)
    notify_sms = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "threshold": self.threshold,
            "isActive": self.is_active,
            "notifyEmail": self.notify_email,
            "notifySms": self.notify_sms,
        }
