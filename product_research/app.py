#!/usr/bin/env python3
"""
Backend Application
===================

Flask entry point for the product research API.
"""

import os

from flask import Flask, jsonify, send_from_directory
from flask_cors import CORS

from .api import register_routes
from .config import config
from .logger import get_logger

logger = get_logger('app')


def create_app(processor=None) -> Flask:
    """Create the Flask app; `processor` overrides the configured JobProcessor"""
    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = config.MAX_UPLOAD_MB * 1024 * 1024
    CORS(app,
         resources={r"/api/*": {"origins": "*"}},
         methods=['GET', 'POST', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization', config.INTERNAL_CALL_HEADER])

    # =========================================================================
    # HEALTH CHECK
    # =========================================================================

    @app.route(f'{config.API_PREFIX}/health', methods=['GET'])
    def health_check():
        """Health check endpoint"""
        return jsonify({
            "status": "healthy",
            "service": "Product Research API",
            "version": "1.0.0",
        })

    # Local object storage is served from here (see PUBLIC_BASE_URL)
    if config.STORAGE_BACKEND == 'local':
        uploads_dir = os.path.abspath(config.LOCAL_STORAGE_DIR)

        @app.route('/uploads/<path:filename>', methods=['GET'])
        def serve_upload(filename):
            return send_from_directory(uploads_dir, filename)

    register_routes(app, processor=processor)
    logger.info("Product research API registered")
    return app


if __name__ == '__main__':
    create_app().run(host=config.HOST, port=config.PORT, debug=config.DEBUG)
