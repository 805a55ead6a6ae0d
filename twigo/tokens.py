"""Issuing and checking the signed access tokens handed to users."""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Any, Optional

import jwt

from .models import Claim, User, hex_id

TOKEN_LIFETIME = timedelta(hours=24)
_HMAC_ALGORITHMS = ["HS256", "HS384", "HS512"]
_DECODE_OPTIONS = {"verify_aud": False, "verify_iat": False}


class TokenError(Exception):
    """A token could not be issued or is not acceptable."""


def generate_jwt(user: User, secret: str) -> str:
    """Sign an HS256 token describing the user, valid for 24 hours."""
    payload = {
        "email": user.email,
        "nombre": user.nombre,
        "apellidos": user.apellidos,
        "fecha_nacimiento": user.fecha_nacimiento,
        "biografia": user.biografia,
        "ubicacion": user.ubicacion,
        "sitioweb": user.sitio_web,
        "_id": hex_id(user.id),
        "exp": int(time.time() + TOKEN_LIFETIME.total_seconds()),
    }
    try:
        return jwt.encode(payload, secret.encode("utf-8"), algorithm="HS256")
    except jwt.PyJWTError as exc:
        raise TokenError(str(exc)) from exc


def process_token(token: str, secret: str, store: Any) -> Optional[Claim]:
    """Check a "Bearer <token>" value.

    Returns the claim when the token is valid and names a registered user,
    None when it is valid but the user is unknown, and raises TokenError when
    the value is malformed or the token does not verify.
    """
    parts = token.split("Bearer")
    if len(parts) != 2:
        raise TokenError("formato de token invalido")
    raw = parts[1].strip()
    try:
        payload = jwt.decode(
            raw,
            secret.encode("utf-8"),
            algorithms=_HMAC_ALGORITHMS,
            options=_DECODE_OPTIONS,
        )
        claim = Claim.from_payload(payload)
    except (jwt.PyJWTError, ValueError) as exc:
        raise TokenError("token invalido") from exc
    if store.find_user(claim.email) is None:
        return None
    return claim