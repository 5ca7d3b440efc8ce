# routes/admin.py
"""
Admin configuration endpoints (admin token required)

POST   /api/save-config    - validate and store Spotify credentials
GET    /api/admin/config   - masked configuration for a project, or the project list
DELETE /api/admin/config   - remove a project's stored configuration
"""

from flask import Blueprint, current_app, jsonify, request
import logging

import config_store
from db_utils import DatabaseNotConfiguredError
from middleware.auth_middleware import require_admin

logger = logging.getLogger(__name__)
admin_bp = Blueprint('admin', __name__, url_prefix='/api')


@admin_bp.route('/save-config', methods=['POST'])
@require_admin
def save_config():
    """
    Save Spotify configuration

    Request body:
        {
            "SPOTIFY_CLIENT_ID": "...",
            "SPOTIFY_CLIENT_SECRET": "...",
            "SPOTIFY_USER_ID": "...",
            "SPOTIFY_REFRESH_TOKEN": "...",
            "projectId": "default" (optional)
        }

    Returns:
        200: {"success": true, "projectId", "updatedAt"}
        400: Invalid body or missing fields
        500: Database error
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'success': False, 'error': 'Invalid request body. Expected JSON object.'}), 400

    missing = config_store.validate_fields(data, config_store.SPOTIFY_KEYS)
    if missing:
        logger.info(f"[SaveConfig] Validation failed, missing: {missing}")
        return jsonify({'success': False, 'error': f"Missing required fields: {', '.join(missing)}"}), 400

    project_id = data.get('projectId') or current_app.config['CONFIG_PROJECT_ID']
    vars = {key: data[key] for key in config_store.SPOTIFY_KEYS}

    try:
        result = config_store.save_config(project_id, vars)
    except DatabaseNotConfiguredError as e:
        logger.error(f"[SaveConfig] {e}")
        return jsonify({'success': False, 'error': 'Database not configured.'}), 500
    except Exception as e:
        logger.error(f"[SaveConfig] Error: {e}", exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to save configuration. Check server logs.'}), 500

    return jsonify({
        'success': True,
        'message': 'Configuration saved successfully',
        'projectId': result['project_id'],
        'updatedAt': result['updated_at']
    }), 200


@admin_bp.route('/admin/config', methods=['GET'])
@require_admin
def get_admin_config():
    """
    Get configuration with secrets masked

    Query parameters:
        projectId: Project to show; without it the list of projects is returned
    """
    project_id = request.args.get('projectId')

    try:
        if project_id:
            row = config_store.get_config(project_id)
            if not row:
                return jsonify({'success': False, 'error': f"Config not found for project: {project_id}"}), 404

            return jsonify({
                'success': True,
                'config': {
                    'projectId': row['project_id'],
                    'vars': config_store.mask_secrets(row['vars']),
                    'hasSpotifyConfig': config_store.has_spotify_config(row['vars']),
                    'lastRun': row.get('last_run'),
                    'createdAt': row.get('created_at'),
                    'updatedAt': row.get('updated_at')
                }
            }), 200

        configs = config_store.list_configs()
        return jsonify({'success': True, 'configs': configs, 'count': len(configs)}), 200

    except DatabaseNotConfiguredError as e:
        logger.error(f"[Admin] {e}")
        return jsonify({'success': False, 'error': 'Database not configured.'}), 500
    except Exception as e:
        logger.error(f"[Admin] Error: {e}", exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to retrieve configuration.'}), 500


@admin_bp.route('/admin/config', methods=['DELETE'])
@require_admin
def delete_admin_config():
    """
    Delete the stored configuration of a project

    Query parameters:
        projectId: Project to delete (required)

    Returns:
        200: {"success": true, "projectId"}
        400: projectId missing
        404: Nothing stored for the project
        500: Database error
    """
    project_id = request.args.get('projectId')
    if not project_id:
        return jsonify({'success': False, 'error': 'projectId is required'}), 400

    try:
        deleted = config_store.delete_config(project_id)
    except DatabaseNotConfiguredError as e:
        logger.error(f"[Admin] {e}")
        return jsonify({'success': False, 'error': 'Database not configured.'}), 500
    except Exception as e:
        logger.error(f"[Admin] Error deleting config: {e}", exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to delete configuration.'}), 500

    if not deleted:
        return jsonify({'success': False, 'error': f"Config not found for project: {project_id}"}), 404

    logger.info(f"[Admin] Deleted config for project {project_id}")
    return jsonify({'success': True, 'projectId': project_id}), 200
