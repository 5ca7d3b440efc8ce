# routes/health.py
from flask import Blueprint, jsonify
import logging
import time
import db_utils

logger = logging.getLogger(__name__)
health_bp = Blueprint('health', __name__)

@health_bp.route('/health', methods=['GET'])
def health_check():
    """Liveness check; never touches the database"""
    return jsonify({
        'status': 'ok',
        'pool_stats': db_utils.get_pool_stats(),
        'timestamp': time.time()
    }), 200
