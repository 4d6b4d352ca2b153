import logging

from core.imports import Flask
from core.config import Config
from core.errors import register_error_handlers
from core.extensions import db, jwt, swagger, cors, bcrypt, migrate, mail, paydunya, media
from routes.auth import auth_bp
from routes.profile import profile_bp
from routes.security import security_bp
from routes.catalog import catalog_bp, categories_bp, promotions_bp
from routes.cart import cart_bp
from routes.orders import orders_bp
from routes.payments import payments_bp
from routes.reviews import reviews_bp
from routes.notifications import notifications_bp
from routes.favourites import favourites_bp
from routes.seller import seller_bp
from routes.sellerOrders import seller_orders_bp


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.json.sort_keys = False

    if not app.debug and not app.testing:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    db.init_app(app)
    jwt.init_app(app)
    swagger.init_app(app)
    cors.init_app(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)
    bcrypt.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    paydunya.init_app(app)
    media.init_app(app)

    prefix = "/" + app.config["API_PREFIX"]
    app.register_blueprint(auth_bp, url_prefix=f"{prefix}/auth")
    app.register_blueprint(profile_bp, url_prefix=f"{prefix}/profile")
    app.register_blueprint(security_bp, url_prefix=f"{prefix}/security")
    app.register_blueprint(reviews_bp, url_prefix=f"{prefix}/products")
    app.register_blueprint(catalog_bp, url_prefix=f"{prefix}/products")
    app.register_blueprint(categories_bp, url_prefix=f"{prefix}/categories")
    app.register_blueprint(promotions_bp, url_prefix=f"{prefix}/promotions")
    app.register_blueprint(cart_bp, url_prefix=f"{prefix}/cart")
    app.register_blueprint(orders_bp, url_prefix=f"{prefix}/orders")
    app.register_blueprint(payments_bp, url_prefix=f"{prefix}/payments")
    app.register_blueprint(notifications_bp, url_prefix=f"{prefix}/notifications")
    app.register_blueprint(favourites_bp, url_prefix=f"{prefix}/favorites")
    app.register_blueprint(seller_orders_bp, url_prefix=f"{prefix}/seller/orders")
    app.register_blueprint(seller_bp, url_prefix=f"{prefix}/seller")

    register_error_handlers(app, db, jwt)

    @app.route('/ping')
    def ping():
        return "Ping received", 200

    return app


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()

    app.run(debug=True)
