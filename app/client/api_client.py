# app/client/api_client.py
import requests

from app.utils.retry import http_retry
from app.utils.settings import API_BASE_URL
from app.utils.logging import get_logger

logger = get_logger(__name__)


class CartApiClient:
    """Client HTTP de l'API panier, utilisé par le CartStore."""

    def __init__(
        self,
        base_url: str | None = None,
        user_id: int | None = None,
        timeout: int = 5,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or API_BASE_URL).rstrip("/")
        self.user_id = user_id
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> dict:
        return {"X-User-Id": str(self.user_id)} if self.user_id is not None else {}

    @http_retry()
    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        logger.info(f"CartApiClient {method} {url}")

        resp = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def validate(self, items: list[dict]) -> dict:
        return self._request("POST", "/cart/validate", json={"items": items})["data"]

    def get_cart(self) -> dict:
        return self._request("GET", "/cart")["data"]

    def add_item(self, product_id: str, quantity: int) -> dict:
        return self._request(
            "POST", "/cart/items", json={"product_id": product_id, "quantity": quantity}
        )["data"]

    def sync(self, items: list[dict]) -> dict:
        return self._request("POST", "/cart/sync", json={"items": items})["data"]


def error_message(exc: requests.RequestException, default: str) -> str:
    """Message renvoyé par l'API dans l'enveloppe {success, message}, sinon `default`."""
    response = getattr(exc, "response", None)
    if response is None:
        return default
    try:
        return response.json().get("message") or default
    except ValueError:
        return default
