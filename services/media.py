import logging
import re

import cloudinary
import cloudinary.uploader

from core.errors import BadRequestError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
PUBLIC_ID_PATTERN = re.compile(r"/v\d+/(.+)\.(jpg|jpeg|png|webp|gif)$", re.IGNORECASE)


def allowed_file(filename):
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def extract_public_id(url):
    if not url:
        return None
    match = PUBLIC_ID_PATTERN.search(url)
    return match.group(1) if match else None


class MediaStore:
    """Cloudinary-backed image hosting, bound to the app like a Flask extension."""

    def __init__(self, app=None):
        self.max_size = 5 * 1024 * 1024
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        cloudinary.config(
            cloud_name=app.config.get("CLOUDINARY_CLOUD_NAME"),
            api_key=app.config.get("CLOUDINARY_API_KEY"),
            api_secret=app.config.get("CLOUDINARY_API_SECRET"),
            secure=True,
        )
        self.max_size = app.config.get("MAX_IMAGE_SIZE", self.max_size)
        app.extensions["media"] = self

    def upload_image(self, file, folder):
        """Upload a werkzeug FileStorage and return (secure_url, public_id)."""
        if not file or not file.filename:
            raise BadRequestError("Aucun fichier fourni")
        if not allowed_file(file.filename):
            raise BadRequestError(f"Type de fichier non autorisé : {file.filename}")

        content = file.read()
        if not content:
            raise BadRequestError(f"Le fichier {file.filename} est vide")
        if len(content) > self.max_size:
            raise BadRequestError(f"Le fichier {file.filename} dépasse la taille maximale de 5 Mo")

        try:
            result = cloudinary.uploader.upload(
                content,
                folder=folder,
                resource_type="image",
                transformation=[{"width": 1200, "height": 1200, "crop": "limit", "quality": "auto"}],
            )
        except Exception as e:
            logger.exception("Cloudinary upload failed for %s", file.filename)
            raise BadRequestError(f"Erreur lors de l'upload de l'image {file.filename}: {e}")

        url = result.get("secure_url")
        return url, result.get("public_id") or extract_public_id(url)

    def delete_image(self, public_id):
        """Remove an image; failures are logged, not raised."""
        if not public_id:
            return False
        try:
            result = cloudinary.uploader.destroy(public_id)
            return result.get("result") == "ok"
        except Exception:
            logger.warning("Cloudinary delete failed for %s", public_id, exc_info=True)
            return False
