# routes/__init__.py
"""
Blueprint registration helper
"""

def register_blueprints(app):
    """Register all application blueprints"""
    from routes.health import health_bp
    from routes.auth import auth_bp
    from routes.playlist import playlist_bp
    from routes.links import links_bp
    from routes.admin import admin_bp
    from routes.status import status_bp
    from routes.stats import stats_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(playlist_bp)
    app.register_blueprint(links_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(status_bp)
    app.register_blueprint(stats_bp)
