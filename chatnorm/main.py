"""Flask application entrypoint."""

import hmac
import json
import logging
import os
from functools import wraps

from flask import Flask, Response, jsonify, request

from .config import ConfigManager
from .format_converter import CLIENT_FORMAT_CLAUDE, CLIENT_FORMAT_OPENAI, FormatConverter
from .models import TokenInfo
from .signatures import SignatureCache
from .utils import generate_session_id

logger = logging.getLogger(__name__)


def configure_logging():
    handlers = [logging.StreamHandler()]
    log_dir = os.getenv("LOG_DIR")
    if log_dir:
        try:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(logging.FileHandler(os.path.join(log_dir, "normalizer.log")))
        except OSError as exc:
            # Keep console logging when filesystem path is unavailable.
            logger.warning("File logging disabled: %s", exc)

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )


# ------------------------------------------------------------------
# 错误响应
# ------------------------------------------------------------------

def error_response_for_client(status_code: int, message: str, client_format: str) -> Response:
    if client_format == CLIENT_FORMAT_CLAUDE:
        if status_code in (401, 403):
            error_type = "authentication_error"
        elif status_code >= 500:
            error_type = "api_error"
        else:
            error_type = "invalid_request_error"
        body = {"type": "error", "error": {"type": error_type, "message": message}}
    else:
        error_type = "invalid_request_error" if status_code < 500 else "api_error"
        body = {"error": {"message": message, "type": error_type, "code": status_code}}
    return Response(json.dumps(body, ensure_ascii=False), status=status_code, content_type="application/json")


def _extract_gateway_api_key() -> str:
    """Extract gateway API key from common request locations."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip()

    header_value = request.headers.get("x-api-key")
    if header_value:
        return header_value.strip()

    return ""


def _token_from_request() -> TokenInfo:
    session_id = request.headers.get("X-Session-Id", "").strip() or generate_session_id()
    project_id = request.headers.get("X-Project-Id", "").strip()
    return TokenInfo(session_id=session_id, project_id=project_id)


def create_app(config_manager: ConfigManager = None, signatures: SignatureCache = None) -> Flask:
    config_manager = config_manager or ConfigManager()
    if signatures is None:
        settings = config_manager.settings
        signatures = SignatureCache(settings.default_reasoning_signature, settings.default_tool_signature)
    converter = FormatConverter(config_manager, signatures)

    app = Flask(__name__)
    app.config["CONFIG_MANAGER"] = config_manager
    app.config["FORMAT_CONVERTER"] = converter
    app.config["SIGNATURE_CACHE"] = signatures

    def require_api_key(client_format: str):
        """Route decorator for optional gateway API key auth."""

        def decorator(func):
            @wraps(func)
            def decorated_function(*args, **kwargs):
                gateway_api_key = config_manager.settings.api_key
                if gateway_api_key:
                    provided_key = _extract_gateway_api_key()
                    if not provided_key:
                        return error_response_for_client(401, "Missing API key", client_format)
                    if not hmac.compare_digest(provided_key, gateway_api_key):
                        return error_response_for_client(401, "Invalid API key", client_format)
                return func(*args, **kwargs)

            return decorated_function

        return decorator

    def normalize(client_format: str, handler) -> Response:
        body = request.get_json(silent=True)
        if not body:
            return error_response_for_client(400, "Request body is required", client_format)
        if not isinstance(body, dict):
            return error_response_for_client(400, "Request body must be a JSON object", client_format)
        model = body.get("model")
        if not model:
            return error_response_for_client(400, "Model field is required", client_format)
        if not isinstance(model, str):
            return error_response_for_client(400, "Model field must be a string", client_format)

        try:
            result = handler(body, _token_from_request())
        except ValueError as exc:
            logger.warning("Rejected %s request: %s", client_format, exc)
            return error_response_for_client(400, str(exc), client_format)
        return Response(json.dumps(result, ensure_ascii=False), status=200, content_type="application/json")

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy", "version": "1.0.0"})

    @app.route("/v1/normalize/chat/completions", methods=["POST"])
    @require_api_key(CLIENT_FORMAT_OPENAI)
    def normalize_chat_completions():
        return normalize(CLIENT_FORMAT_OPENAI, converter.normalize_openai_request)

    @app.route("/v1/normalize/messages", methods=["POST"])
    @require_api_key(CLIENT_FORMAT_CLAUDE)
    def normalize_claude_messages():
        return normalize(CLIENT_FORMAT_CLAUDE, converter.normalize_claude_request)

    @app.route("/admin/reload", methods=["POST"])
    @require_api_key(CLIENT_FORMAT_OPENAI)
    def reload_config():
        try:
            config_manager.reload()
            return jsonify({"status": "ok", "message": "Configuration reloaded"})
        except Exception as exc:
            return jsonify({"status": "error", "message": str(exc)}), 500

    return app


if __name__ == "__main__":
    configure_logging()
    create_app().run(
        host="0.0.0.0",
        port=int(os.getenv("PORT", "6010")),
        debug=os.getenv("FLASK_DEBUG", "false").lower() in ("1", "true", "yes", "on"),
    )
