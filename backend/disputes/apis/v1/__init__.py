from flask import Blueprint, Flask, g, jsonify, request

from ...modules.bus.routes import bp as messages_bp


def register_api(app: Flask) -> None:
    api_v1 = Blueprint("api_v1", __name__, url_prefix="/api/v1")

    # Only other services talk to this API; every call carries a signed
    # bearer token issued with our SECRET_KEY.
    @api_v1.before_request  # type: ignore
    def _require_service_token():
        from ...security import verify_service_token

        auth = request.headers.get("Authorization") or ""
        caller = None
        if auth.lower().startswith("bearer "):
            caller = verify_service_token(auth[7:].strip())
        if caller is None:
            return jsonify({"status": 401, "message": "A valid service token is required"}), 401
        g.calling_service = caller  # type: ignore[attr-defined]
        return None

    # Mount feature blueprints
    api_v1.register_blueprint(messages_bp)

    app.register_blueprint(api_v1)
