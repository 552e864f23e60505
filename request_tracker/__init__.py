from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from request_tracker.config import Config
from request_tracker.observability import (
    configure_json_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
)


def create_app(config_class=Config, record_client=None):
    app = Flask(__name__)
    # Instantiating runs the production guards in Config.__init__.
    app.config.from_object(config_class() if isinstance(config_class, type) else config_class)
    configure_json_logging(app)

    _register_error_handlers(app)
    _register_workflow(app, record_client)
    _register_blueprints(app)
    _register_health(app)
    _register_cli(app)
    return app


def _register_workflow(app: Flask, record_client) -> None:
    from request_tracker.record_client import build_record_client
    from request_tracker.workflow.dispatcher import ActionDispatcher

    client = record_client if record_client is not None else build_record_client(app.config)
    app.extensions["request_tracker.dispatcher"] = ActionDispatcher(client)


def _register_blueprints(app: Flask) -> None:
    from request_tracker.routes.workflow_routes import workflow_bp

    app.register_blueprint(workflow_bp)


def _register_cli(app: Flask) -> None:
    from request_tracker.cli import register_workflow_cli

    register_workflow_cli(app)


def _register_error_handlers(app: Flask) -> None:
    from request_tracker.errors import AppError, SystemError, error_for_record_failure
    from request_tracker.record_client import RecordClientError

    @app.before_request
    def _ensure_request_id() -> None:
        ensure_request_id()
        mark_request_start()

    @app.after_request
    def _append_request_id(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        return observe_response(response)

    def _log_error(error: AppError, request_id: str) -> None:
        log_method = app.logger.error if error.critical else app.logger.warning
        log_method(
            "application_error",
            extra={
                "request_id": request_id,
                "error_code": error.code,
                "http_status": error.http_status,
                "message_key": error.message_key,
                "details": error.details,
                "request_path": request.path,
                "http_method": request.method,
            },
            exc_info=error.critical,
        )

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        request_id = ensure_request_id()
        _log_error(exc, request_id)
        return jsonify(exc.to_response_payload(request_id)), exc.http_status

    @app.errorhandler(RecordClientError)
    def _handle_record_error(exc: RecordClientError):
        request_id = ensure_request_id()
        mapped = error_for_record_failure(str(exc))
        _log_error(mapped, request_id)
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        request_id = ensure_request_id()
        mapped = SystemError(
            code="unexpected_error",
            message_key="unexpected_error",
            http_status=500,
            critical=True,
            details=str(exc),
        )
        app.logger.exception(
            "unexpected_exception",
            extra={
                "request_id": request_id,
                "error_code": mapped.code,
                "request_path": request.path,
                "http_method": request.method,
            },
        )
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status


def _register_health(app: Flask) -> None:
    @app.route("/health")
    def health():
        dispatcher = app.extensions["request_tracker.dispatcher"]
        payload = {
            "status": "ok",
            "record_mode": str(app.config.get("RECORD_MODE") or "mock"),
            "record_client": type(dispatcher.client).__name__,
            "snapshots_held": len(dispatcher.store.ids()),
            "metrics": {
                "http": metrics_snapshot(),
            },
        }
        return payload, 200
