from __future__ import annotations

from typing import Optional

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer


def _serializer(secret: str | None = None) -> URLSafeTimedSerializer:
    secret = secret or current_app.config.get("SECRET_KEY", "change-me")
    # Salt provides namespace isolation for tokens
    return URLSafeTimedSerializer(secret_key=secret, salt="service-token")


def issue_service_token(service_name: str, secret: str | None = None) -> str:
    """Issue a signed token for a calling service (e.g. the API gateway).

    Payload is minimal: {"svc": str}
    """
    return _serializer(secret).dumps({"svc": str(service_name)})


def verify_service_token(token: str, max_age: int | None = None) -> Optional[str]:
    """Verify a token and return the calling service name if valid, else None.

    Max age comes from SERVICE_TOKEN_MAX_AGE seconds (default 1 day).
    """
    if max_age is None:
        max_age = int(current_app.config.get("SERVICE_TOKEN_MAX_AGE", 60 * 60 * 24))
    try:
        data = _serializer().loads(token, max_age=max_age)
    except (BadSignature, SignatureExpired):
        return None
    if not isinstance(data, dict) or not data.get("svc"):
        return None
    return str(data["svc"])
