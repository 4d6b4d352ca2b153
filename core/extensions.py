from core.imports import Bcrypt, Swagger, JWTManager, SQLAlchemy, CORS, Migrate, Mail
from services.paydunya import PayDunya
from services.media import MediaStore

SWAGGER_TEMPLATE = {
    "info": {"title": "Sendiaba Marketplace API", "version": "1.0.0"},
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "JWT access token: \"Bearer {token}\"",
        }
    },
}

jwt = JWTManager()
db = SQLAlchemy()
migrate = Migrate()
swagger = Swagger(template=SWAGGER_TEMPLATE)
cors = CORS()
mail = Mail()
bcrypt = Bcrypt()
paydunya = PayDunya()
media = MediaStore()
