"""
Digital Diggaz API Backend
A Flask API that builds the monthly playlist and serves the admin panel
"""

from flask import Flask, request
from flask_cors import CORS
import atexit
import logging
import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Configuration
from config import configure_logging, init_app_config

# Pooled connections for the long-running server process
os.environ.setdefault('DB_USE_POOLING', 'true')

import db_utils as db_tools

logger = configure_logging()


def create_app():
    """Create the Flask app with every blueprint registered"""
    app = Flask(__name__)
    CORS(app)
    init_app_config(app)

    from routes import register_blueprints
    register_blueprints(app)

    # Request/response logging
    @app.before_request
    def log_request():
        """Log incoming requests"""
        logger.info(f"{request.method} {request.path}")

    @app.after_request
    def log_response(response):
        """Log response status"""
        logger.info(f"{request.method} {request.path} - {response.status_code}")
        return response

    return app


app = create_app()

logger.info(f"Spotify credentials present: {bool(os.environ.get('SPOTIFY_CLIENT_ID'))}")
logger.info(f"Flask app initialized in PID {os.getpid()}")


def cleanup_connections():
    """Close the connection pool on shutdown"""
    logger.info("Shutting down connection pool...")
    db_tools.close_connection_pool()
    logger.info("Connection pool closed")

atexit.register(cleanup_connections)


if __name__ == '__main__':
    # Running directly with 'python app.py' (not gunicorn)
    logger.info("Starting Flask application directly (not gunicorn)...")
    logger.info("Database connection pool will initialize on first request")
    app.run(debug=True, host='0.0.0.0', port=int(os.environ.get('PORT', 5001)))
