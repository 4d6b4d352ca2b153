"""Client for the PayDunya checkout-invoice API (mobile money aggregator)."""
import hashlib
import hmac
import json
import logging

import requests

from core.errors import BadRequestError

logger = logging.getLogger(__name__)

SANDBOX_URL = "https://app.paydunya.com/sandbox-api/v1"
LIVE_URL = "https://app.paydunya.com/api/v1"


class PayDunya:
    def __init__(self, app=None):
        self.mode = "test"
        self.base_url = SANDBOX_URL
        self.master_key = self.private_key = self.public_key = self.token = ""
        self.timeout = 30
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        cfg = app.config
        self.mode = "live" if cfg.get("PAYDUNYA_MODE") == "live" else "test"
        prefix = f"PAYDUNYA_{self.mode.upper()}_"
        self.master_key = cfg.get(prefix + "MASTER_KEY") or ""
        self.private_key = cfg.get(prefix + "PRIVATE_KEY") or ""
        self.public_key = cfg.get(prefix + "PUBLIC_KEY") or ""
        self.token = cfg.get(prefix + "TOKEN") or ""
        self.base_url = LIVE_URL if self.mode == "live" else SANDBOX_URL
        self.timeout = cfg.get("PAYDUNYA_TIMEOUT", 30)

        self.ipn_url = f"{cfg['API_BASE_URL']}/{cfg['API_PREFIX']}/payments/paydunya/webhook"
        self.return_url = f"{cfg['FRONTEND_URL']}/orders/success"
        self.cancel_url = f"{cfg['FRONTEND_URL']}/orders/cancel"
        self.store = {
            "name": cfg.get("STORE_NAME", "Sendiaba"),
            "tagline": "Plateforme B2B en Afrique de l'Ouest",
            "phone_number": "+221771234567",
            "postal_address": "Dakar, Sénégal",
            "website_url": cfg["FRONTEND_URL"],
        }

        if not self.configured:
            logger.error("PayDunya keys missing: set %sMASTER_KEY, %sPRIVATE_KEY, %sPUBLIC_KEY and %sTOKEN",
                         prefix, prefix, prefix, prefix)
        app.extensions["paydunya"] = self

    @property
    def configured(self):
        return all([self.master_key, self.private_key, self.public_key, self.token])

    def sign(self, body):
        if isinstance(body, str):
            body = body.encode("utf-8")
        return hmac.new(self.master_key.encode("utf-8"), body, hashlib.sha256).hexdigest()

    def verify_signature(self, body, signature):
        if not signature:
            return False
        return hmac.compare_digest(self.sign(body), signature)

    def _headers(self):
        return {
            "PAYDUNYA-MASTER-KEY": self.master_key,
            "PAYDUNYA-PRIVATE-KEY": self.private_key,
            "PAYDUNYA-PUBLIC-KEY": self.public_key,
            "PAYDUNYA-TOKEN": self.token,
            "Content-Type": "application/json",
        }

    def create_invoice(self, total_amount, description, items, custom_data=None):
        """Create a checkout invoice and return the gateway response.

        The response carries ``token`` and ``response_text`` (the payment URL).
        """
        if not self.configured:
            raise BadRequestError(
                "Les clés API PayDunya ne sont pas configurées "
                f"(PAYDUNYA_{self.mode.upper()}_*)."
            )

        payload = {
            "invoice": {
                "items": items,
                "total_amount": total_amount,
                "description": description,
                "callback_url": self.ipn_url,
                "return_url": self.return_url,
                "cancel_url": self.cancel_url,
            },
            "store": self.store,
            "custom_data": custom_data or {},
            "actions": {"cancel_url": self.cancel_url, "return_url": self.return_url},
        }
        body = json.dumps(payload)
        headers = self._headers()
        headers["PAYDUNYA-SIGNATURE"] = self.sign(body)

        url = f"{self.base_url}/checkout-invoice/create"
        logger.debug("PayDunya create invoice (%s mode): %s", self.mode, url)
        try:
            response = requests.post(url, data=body, headers=headers, timeout=self.timeout)
            data = response.json()
        except requests.RequestException as e:
            logger.exception("PayDunya invoice request failed")
            raise BadRequestError(f"Erreur lors de la création de la facture PayDunya: {e}")
        except ValueError:
            logger.error("PayDunya returned a non-JSON body (HTTP %s)", response.status_code)
            raise BadRequestError("Réponse invalide de PayDunya. Aucune donnée reçue.")

        logger.debug("PayDunya response: %s", data)
        if data.get("response_code") != "00":
            message = data.get("response_text") or data.get("description") or "Erreur inconnue"
            code = data.get("response_code", "N/A")
            logger.error("PayDunya error %s: %s", code, message)
            if "masterkey" in message.lower():
                raise BadRequestError(
                    f"Clé API PayDunya invalide (Mode: {self.mode}). "
                    f"Vérifiez PAYDUNYA_{self.mode.upper()}_MASTER_KEY."
                )
            raise BadRequestError(f"Erreur PayDunya ({code}): {message}")

        if not data.get("token") or not data.get("response_text"):
            logger.error("Incomplete PayDunya response: %s", data)
            raise BadRequestError("Réponse PayDunya incomplète. Le token ou l'URL de paiement est manquant.")
        return data

    def verify_invoice(self, token):
        url = f"{self.base_url}/checkout-invoice/verify/{token}"
        try:
            response = requests.get(url, headers=self._headers(), timeout=self.timeout)
            data = response.json()
        except requests.RequestException as e:
            logger.exception("PayDunya verification failed for %s", token)
            raise BadRequestError(f"Erreur lors de la vérification de la facture: {e}")
        except ValueError:
            raise BadRequestError("Réponse invalide de PayDunya lors de la vérification")

        if data.get("response_code") != "00":
            message = data.get("response_text") or data.get("description") or "Erreur inconnue"
            logger.error("PayDunya verification of %s refused (%s): %s",
                         token, data.get("response_code", "N/A"), message)
            raise BadRequestError(f"Vérification PayDunya impossible: {message}")
        return data
