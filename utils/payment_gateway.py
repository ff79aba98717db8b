"""
Payment gateway clients (Midtrans Snap + core status API).

The gateway is built once at startup from an explicit mode and injected into
the app; nothing here reads the environment.
"""
import base64
import enum
import json
import logging
import secrets
import socket
import time
import urllib.error
import urllib.parse
import urllib.request

from utils.exceptions import GatewayError

logger = logging.getLogger(__name__)

SNAP_URLS = {
    True: "https://app.midtrans.com/snap/v1/transactions",
    False: "https://app.sandbox.midtrans.com/snap/v1/transactions",
}
CORE_API_URLS = {
    True: "https://api.midtrans.com/v2",
    False: "https://api.sandbox.midtrans.com/v2",
}


class GatewayMode(enum.Enum):
    LIVE = "live"
    SANDBOX = "sandbox"
    DISABLED = "disabled"

    @classmethod
    def parse(cls, value):
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            valid = ", ".join(m.value for m in cls)
            raise RuntimeError(f"PAYMENT_GATEWAY_MODE must be one of: {valid} (got {value!r})")


def generate_order_id():
    """Generate unique gateway order id"""
    return f"SUBS-{int(time.time() * 1000)}-{secrets.token_hex(5)}"


class MidtransGateway:
    """Talks to the real gateway over HTTPS (production or the gateway's sandbox hosts)"""

    mode = GatewayMode.LIVE

    def __init__(self, server_key, client_key, is_production=False, timeout=10):
        if not server_key or not client_key:
            raise RuntimeError("MidtransGateway requires both a server key and a client key")
        self.server_key = server_key
        self.client_key = client_key
        self.is_production = is_production
        self.timeout = timeout

    def _auth_header(self):
        token = base64.b64encode(f"{self.server_key}:".encode("utf-8")).decode("ascii")
        return f"Basic {token}"

    def _request(self, url, method="GET", body=None):
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urllib.request.Request(url, data=data, method=method)
        req.add_header("Accept", "application/json")
        req.add_header("Content-Type", "application/json")
        req.add_header("Authorization", self._auth_header())
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as r:
                return json.loads(r.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace")[:500]
            raise GatewayError(f"Gateway returned HTTP {e.code}", status=e.code, detail=detail) from e
        except (urllib.error.URLError, socket.timeout, TimeoutError) as e:
            raise GatewayError(f"Gateway unreachable: {e}") from e
        except ValueError as e:
            raise GatewayError("Gateway returned a non-JSON response") from e

    def create_transaction(self, params):
        """Create a Snap checkout; returns dict with token and redirect_url."""
        result = self._request(SNAP_URLS[self.is_production], method="POST", body=params)
        if not result.get("token"):
            raise GatewayError("Gateway did not return a payment token", detail=result)
        return result

    def get_status(self, order_id):
        """Fetch the gateway's current view of an order."""
        url = f"{CORE_API_URLS[self.is_production]}/{urllib.parse.quote(order_id, safe='')}/status"
        result = self._request(url)
        # The status API reports unknown orders in the body with HTTP 200.
        if str(result.get("status_code")) == "404":
            raise GatewayError(f"Gateway has no record of order {order_id}", status=404)
        return result


class SandboxGateway:
    """In-process stand-in used when no real gateway should be contacted"""

    mode = GatewayMode.SANDBOX

    def __init__(self, client_url="http://localhost:3000"):
        self.client_url = client_url.rstrip("/")

    def create_transaction(self, params):
        details = params["transaction_details"]
        order_id = details["order_id"]
        logger.warning("Sandbox gateway: creating mock checkout for %s", order_id)
        query = urllib.parse.urlencode({"order_id": order_id, "amount": details["gross_amount"]})
        return {
            "token": f"mock-token-{int(time.time() * 1000)}",
            "redirect_url": f"{self.client_url}/payment/mock?{query}",
        }

    def get_status(self, order_id):
        logger.warning("Sandbox gateway: reporting mock settlement for %s", order_id)
        return {
            "order_id": order_id,
            "status_code": "200",
            "transaction_status": "settlement",
            "fraud_status": "accept",
            "payment_type": "sandbox",
        }


class DisabledGateway:
    """Refuses every call; checkout is off and polling relies on webhooks only"""

    mode = GatewayMode.DISABLED

    def create_transaction(self, params):
        raise GatewayError("Payment gateway is disabled")

    def get_status(self, order_id):
        raise GatewayError("Payment gateway is disabled")


def build_gateway(config):
    """Build the gateway client for the configured mode and log the choice."""
    mode = GatewayMode.parse(config.get("PAYMENT_GATEWAY_MODE"))

    if mode is GatewayMode.LIVE:
        server_key = config.get("MIDTRANS_SERVER_KEY")
        client_key = config.get("MIDTRANS_CLIENT_KEY")
        if not server_key or not client_key:
            raise RuntimeError(
                "PAYMENT_GATEWAY_MODE=live requires MIDTRANS_SERVER_KEY and MIDTRANS_CLIENT_KEY. "
                "Set PAYMENT_GATEWAY_MODE=sandbox to run against the mock gateway."
            )
        is_production = bool(config.get("MIDTRANS_IS_PRODUCTION"))
        logger.info(
            "Payment gateway mode: LIVE (%s endpoints)", "production" if is_production else "sandbox"
        )
        return MidtransGateway(
            server_key,
            client_key,
            is_production=is_production,
            timeout=config.get("GATEWAY_TIMEOUT_SECONDS", 10),
        )

    if mode is GatewayMode.SANDBOX:
        logger.warning(
            "Payment gateway mode: SANDBOX. Checkouts and status checks are mocked; "
            "every polled order reports as settled. Do not use in production."
        )
        return SandboxGateway(config.get("CLIENT_URL") or "http://localhost:3000")

    logger.error("Payment gateway mode: DISABLED. Checkout is unavailable.")
    return DisabledGateway()
