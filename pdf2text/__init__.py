"""
pdf2text Application Factory
"""
import os
from typing import Any, Dict, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import RequestEntityTooLarge

from pdf2text.archive import ArchiveStore
from pdf2text.config import config


def create_app(config_name: Optional[str] = None, test_config: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    config_name = config_name or os.environ.get("FLASK_ENV", "default")
    app.config.from_object(config.get(config_name, config["default"]))
    if test_config:
        app.config.update(test_config)

    # Archive store is the only owner of the index file
    archive = ArchiveStore(
        app.config["ARCHIVE_DIR"],
        capacity=app.config.get("ARCHIVE_CAPACITY", 100),
        orphan_pdf_age=app.config.get("ARCHIVE_ORPHAN_PDF_AGE", 3600),
    )
    archive.reconcile()
    app.extensions["archive"] = archive

    if not app.config.get("UPSTAGE_API_KEY"):
        app.logger.warning("UPSTAGE_API_KEY is not set. PDF conversion will not work.")
    if not app.config.get("OPENAI_API_KEY"):
        app.logger.warning("OPENAI_API_KEY is not set. Translation and AI features will not work.")

    from pdf2text.api import api_bp
    app.register_blueprint(api_bp)

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        limit_mb = (app.config.get("MAX_CONTENT_LENGTH") or 0) // (1024 * 1024)
        return jsonify({"success": False, "error": f"File too large (limit {limit_mb}MB)"}), 413

    return app
