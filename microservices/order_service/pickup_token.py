"""
Pickup Token Codec

Mints and validates the QR pickup token of an order.

Payload format (unpadded base64url segments):

    base64url(JSON{"orderId", "secret", "mintedAt"}) "." base64url(HMAC-SHA256(secret, body))

The secret is stored on the order; a scanned payload is accepted only while
it is younger than the TTL and carries the stored secret. The MAC makes any
altered payload fail to decode.
"""

import base64
import binascii
import hashlib
import hmac
import json
import re
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import quote

from .protocols import ExpiredTokenError, MalformedTokenError, SecretMismatchError

TOKEN_TTL_MS = 24 * 60 * 60 * 1000
PICKUP_CODE_DIGITS = 6
DEFAULT_QR_IMAGE_BASE_URL = "https://api.qrserver.com/v1/create-qr-code/"

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_HEX_RE = re.compile(r"^[0-9a-f]+$")


@dataclass(frozen=True)
class PickupToken:
    """Decoded pickup token"""
    order_id: str
    secret: str
    minted_at: int  # epoch milliseconds

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.minted_at

    def is_expired(self, now_ms: int, ttl_ms: int = TOKEN_TTL_MS) -> bool:
        return self.age_ms(now_ms) > ttl_ms


@dataclass(frozen=True)
class MintedToken:
    """Freshly minted token: payload for the QR code plus the secret to store"""
    payload: str
    secret: str
    token: PickupToken


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(segment: str) -> bytes:
    if not segment or not _SEGMENT_RE.match(segment):
        raise MalformedTokenError("Token segment is not base64url")
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
    except (binascii.Error, ValueError) as e:
        raise MalformedTokenError(f"Token segment cannot be decoded: {e}")
    # Only canonical encodings are accepted
    if _b64encode(raw) != segment:
        raise MalformedTokenError("Token segment is not canonical base64url")
    return raw


def _sign(secret: str, body: bytes) -> bytes:
    return hmac.new(secret.encode("ascii"), body, hashlib.sha256).digest()


class PickupTokenCodec:
    """Pickup token mint / decode / validate"""

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        ttl_ms: int = TOKEN_TTL_MS,
        qr_image_base_url: str = DEFAULT_QR_IMAGE_BASE_URL,
    ):
        """
        Args:
            clock: Returns the current time in epoch seconds (time.time by default)
            ttl_ms: Token lifetime in milliseconds
            qr_image_base_url: QR rendering endpoint used by image_url
        """
        self.clock = clock or time.time
        self.ttl_ms = ttl_ms
        self.qr_image_base_url = qr_image_base_url

    def now_ms(self) -> int:
        return int(self.clock() * 1000)

    def mint(self, order_id: str) -> MintedToken:
        """Create a token for an order with a fresh 256-bit secret"""
        token = PickupToken(
            order_id=order_id,
            secret=secrets.token_hex(32),
            minted_at=self.now_ms(),
        )
        return MintedToken(payload=self.encode(token), secret=token.secret, token=token)

    def encode(self, token: PickupToken) -> str:
        body = json.dumps(
            {"orderId": token.order_id, "secret": token.secret, "mintedAt": token.minted_at},
            separators=(",", ":"),
        ).encode("utf-8")
        return f"{_b64encode(body)}.{_b64encode(_sign(token.secret, body))}"

    def decode(self, payload: str) -> PickupToken:
        """
        Recover the token fields from a payload.

        Raises:
            MalformedTokenError: bad encoding, missing fields or failed MAC
        """
        if not isinstance(payload, str) or payload.count(".") != 1:
            raise MalformedTokenError("Token must have two segments")

        body_segment, mac_segment = payload.split(".")
        body = _b64decode(body_segment)
        mac = _b64decode(mac_segment)

        try:
            data = json.loads(body.decode("utf-8"))
        except ValueError as e:
            raise MalformedTokenError(f"Token body is not JSON: {e}")

        if not isinstance(data, dict):
            raise MalformedTokenError("Token body must be an object")

        order_id = data.get("orderId")
        secret = data.get("secret")
        minted_at = data.get("mintedAt")

        if not isinstance(order_id, str) or not order_id:
            raise MalformedTokenError("Token is missing orderId")
        if not isinstance(secret, str) or not _HEX_RE.match(secret):
            raise MalformedTokenError("Token is missing a hex secret")
        if not isinstance(minted_at, int) or isinstance(minted_at, bool):
            raise MalformedTokenError("Token is missing mintedAt")

        if not hmac.compare_digest(mac, _sign(secret, body)):
            raise MalformedTokenError("Token signature does not verify")

        return PickupToken(order_id=order_id, secret=secret, minted_at=minted_at)

    def validate(self, payload: str, stored_secret: Optional[str]) -> str:
        """
        Check a scanned payload against the secret stored on the order.

        Returns:
            The order id carried by the token

        Raises:
            MalformedTokenError, ExpiredTokenError, SecretMismatchError
        """
        token = self.decode(payload)

        if token.is_expired(self.now_ms(), self.ttl_ms):
            raise ExpiredTokenError(f"Token for order {token.order_id} has expired")

        if not hmac.compare_digest(token.secret.encode("ascii"), (stored_secret or "").encode("utf-8")):
            raise SecretMismatchError(f"Token for order {token.order_id} is no longer valid")

        return token.order_id

    @staticmethod
    def generate_pickup_code() -> str:
        """Six digit code, uniform over 000000-999999"""
        return f"{secrets.randbelow(10 ** PICKUP_CODE_DIGITS):0{PICKUP_CODE_DIGITS}d}"

    def image_url(self, payload: str, size: int = 300) -> str:
        """URL of a rendered QR image for the payload"""
        return f"{self.qr_image_base_url}?size={size}x{size}&data={quote(payload, safe='')}"
