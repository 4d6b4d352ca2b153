from core.extensions import db
from core.imports import datetime
from services.pricing import as_number

ORDER_STATUSES = ("PENDING", "CONFIRMED", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED", "REFUNDED")
PAYMENT_METHODS = ("MOBILE_MONEY", "CASH_ON_DELIVERY", "DIRECT_CONTACT")
PAYMENT_STATUSES = ("PENDING", "PROCESSING", "COMPLETED", "FAILED", "CANCELLED", "REFUNDED")
ACTIVE_PAYMENT_STATUSES = ("PENDING", "PROCESSING", "COMPLETED")


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(40), unique=True, nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="PENDING", index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    shipping = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # copied from the address book when the order is placed
    shipping_address = db.Column(db.String(500), nullable=False)
    shipping_city = db.Column(db.String(100), nullable=False)
    shipping_region = db.Column(db.String(100), nullable=True)
    shipping_country = db.Column(db.String(100), nullable=False)
    shipping_postal_code = db.Column(db.String(20), nullable=True)
    recipient_name = db.Column(db.String(200), nullable=False)
    recipient_phone = db.Column(db.String(30), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    tracking_number = db.Column(db.String(100), nullable=True)
    tracking_url = db.Column(db.String(500), nullable=True)
    carrier = db.Column(db.String(100), nullable=True)

    cancelled_reason = db.Column(db.String(500), nullable=True)
    refund_reason = db.Column(db.String(500), nullable=True)

    confirmed_at = db.Column(db.DateTime, nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)
    shipped_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order_items = db.relationship("OrderItem", backref="order", cascade="all, delete-orphan",
                                  order_by="OrderItem.id")
    payments = db.relationship("Payment", backref="order", cascade="all, delete-orphan",
                               order_by="Payment.created_at.desc()")
    messages = db.relationship("OrderMessage", backref="order", cascade="all, delete-orphan",
                               order_by="OrderMessage.created_at")
    user = db.relationship("User", backref="orders")

    def shipping_dict(self):
        return {
            "address": self.shipping_address,
            "city": self.shipping_city,
            "region": self.shipping_region,
            "country": self.shipping_country,
            "postalCode": self.shipping_postal_code,
            "recipientName": self.recipient_name,
            "recipientPhone": self.recipient_phone,
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)
    product_name = db.Column(db.String(200), nullable=False)  # snapshot of product name
    product_sku = db.Column(db.String(100), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)  # price per unit after promotion
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)  # promotion discount per unit
    total = db.Column(db.Numeric(12, 2), nullable=False)

    product = db.relationship("Product")


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    method = db.Column(db.String(30), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="PENDING")
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="XOF")

    paydunya_token = db.Column(db.String(200), unique=True, nullable=True, index=True)
    paydunya_invoice_id = db.Column(db.String(200), nullable=True)
    paydunya_receipt_url = db.Column(db.String(500), nullable=True)
    transaction_id = db.Column(db.String(200), nullable=True)
    mobile_money_number = db.Column(db.String(30), nullable=True)
    mobile_money_provider = db.Column(db.String(30), nullable=True)
    metadata_ = db.Column("metadata", db.Text, nullable=True)

    failure_reason = db.Column(db.String(500), nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "orderId": self.order_id,
            "method": self.method,
            "status": self.status,
            "amount": as_number(self.amount),
            "currency": self.currency,
            "transactionId": self.transaction_id,
            "receiptUrl": self.paydunya_receipt_url,
            "mobileMoneyProvider": self.mobile_money_provider,
            "failureReason": self.failure_reason,
            "paidAt": self.paid_at.isoformat() if self.paid_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class OrderMessage(db.Model):
    __tablename__ = "order_messages"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    sender_role = db.Column(db.String(20), nullable=False)  # CUSTOMER, SELLER
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    sender = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "orderId": self.order_id,
            "orderNumber": self.order.order_number if self.order else None,
            "senderId": self.sender_id,
            "senderRole": self.sender_role,
            "sender": {
                "id": self.sender.id,
                "firstName": self.sender.first_name,
                "lastName": self.sender.last_name,
            } if self.sender else None,
            "message": self.message,
            "isRead": self.is_read,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
