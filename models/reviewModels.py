from core.extensions import db
from core.imports import datetime


class Review(db.Model):
    __tablename__ = "product_reviews"
    __table_args__ = (db.UniqueConstraint("user_id", "product_id", name="uq_review_user_product"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    rating = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=True)
    comment = db.Column(db.Text, nullable=True)
    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_published = db.Column(db.Boolean, nullable=False, default=True)
    helpful_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = db.relationship("User")
    product = db.relationship("Product", backref=db.backref("reviews", cascade="all, delete-orphan"))

    def to_dict(self):
        return {
            "id": self.id,
            "productId": self.product_id,
            "rating": self.rating,
            "title": self.title,
            "comment": self.comment,
            "isVerified": self.is_verified,
            "helpfulCount": self.helpful_count,
            "user": {
                "id": self.user.id,
                "firstName": self.user.first_name,
                "lastName": self.user.last_name,
                "profilePicture": self.user.profile_picture,
            } if self.user else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
