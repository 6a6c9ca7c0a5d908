import logging
import os

from flask import Flask, request, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

import models
from config import (
    ALLOWED_MIME_TYPES,
    DATABASE_URL,
    MAX_UPLOAD_MB,
    PORT,
    UPLOADS_FOLDER,
)
from database import Base, init_engine
from logging_config import setup_logging
from routes.files import files_bp
from routes.invoices import invoices_bp
from services.files import StorageFault

logger = logging.getLogger(__name__)


def _register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(_):
        return jsonify({
            "error": "Route not found",
            "path": request.path,
            "method": request.method,
        }), 404

    @app.errorhandler(413)
    def too_large(_):
        return jsonify({"error": "Uploaded file is too large"}), 413

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(StorageFault)
    def storage_fault(e):
        logger.error("Storage failure: %s", e, exc_info=e)
        return jsonify({"error": "Internal server error"}), 500

    @app.errorhandler(Exception)
    def unhandled(e):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def create_app(overrides=None):
    app = Flask(__name__)
    CORS(app)
    app.json.ensure_ascii = False

    app.config.update(
        DATABASE_URL=DATABASE_URL,
        UPLOADS_FOLDER=UPLOADS_FOLDER,
        MAX_CONTENT_LENGTH=MAX_UPLOAD_MB * 1024 * 1024,
        ALLOWED_MIME_TYPES=ALLOWED_MIME_TYPES,
    )
    if overrides:
        app.config.update(overrides)

    os.makedirs(app.config["UPLOADS_FOLDER"], exist_ok=True)
    engine = init_engine(app.config["DATABASE_URL"])
    Base.metadata.create_all(bind=engine)

    app.register_blueprint(invoices_bp)
    app.register_blueprint(files_bp)
    _register_error_handlers(app)

    @app.route("/health", methods=["GET"])
    def health():
        return {"status": "ok"}

    return app


if __name__ == "__main__":
    setup_logging()
    app = create_app()
    logger.info("Serving invoices on port %s, files under %s", PORT, app.config["UPLOADS_FOLDER"])
    app.run(host="0.0.0.0", port=PORT, threaded=True)
