from flask import Blueprint, jsonify, request

from ...services import get_services
from .handlers import router

bp = Blueprint("messages", __name__, url_prefix="/messages")


@bp.get("")
def list_patterns():
    return jsonify({"patterns": router.patterns})


@bp.post("/<string:pattern>")
def dispatch(pattern: str):
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        payload = {}
    status, body = router.dispatch(pattern, payload, get_services())
    return jsonify(body), status
