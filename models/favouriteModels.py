from core.extensions import db
from core.imports import datetime


class Favourites(db.Model):
    __tablename__ = "favourites"
    __table_args__ = (db.UniqueConstraint("user_id", "product_id", name="uq_favourite_user_product"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    date_added = db.Column(db.DateTime, default=datetime.utcnow)

    # relationships
    user = db.relationship("User", backref="favourites")
    product = db.relationship("Product", backref=db.backref("favourited_by", cascade="all, delete-orphan"))
