"""
Gateway notification signature helpers.
Signature = hex(SHA-512(order_id + status_code + gross_amount + server_key)).
"""
import hashlib
import hmac


def compute_signature(order_id, status_code, gross_amount, secret):
    """Return the hex SHA-512 signature the gateway would send for these fields."""
    raw = f"{order_id}{status_code}{gross_amount}{secret}"
    return hashlib.sha512(raw.encode("utf-8")).hexdigest()


def verify_signature(order_id, status_code, gross_amount, secret, received_signature):
    """
    Check a received signature against the expected one in constant time.

    Returns False when a secret is configured but any signed field or the
    signature itself is absent. Callers decide what an unset secret means;
    this function never treats it as a pass.
    """
    if not secret:
        return False
    if not order_id or not status_code or not gross_amount or not received_signature:
        return False
    expected = compute_signature(order_id, status_code, gross_amount, secret)
    return hmac.compare_digest(expected, received_signature.strip().lower())
