"""
Arrivals Web API - Flask Application
"""

import logging
import time
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from flask_socketio import SocketIO, emit

from arrivals.core.types import ServiceStatus, TriggerOutcome
from arrivals.service import ServiceRunner

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _not_ready(status: ServiceStatus):
    return jsonify({
        'error': 'Data not available yet',
        'message': 'Please wait for the first data refresh',
        'last_error': status.last_error.to_dict() if status.last_error else None,
    }), 503


def create_app(runner: ServiceRunner) -> tuple[Flask, SocketIO]:
    """Create the Flask app and its SocketIO server around a running service"""
    app = Flask(__name__)
    app.config['SECRET_KEY'] = 'arrivals-secret-key'
    socketio = SocketIO(app, cors_allowed_origins="*", async_mode="threading")
    started_at = time.monotonic()

    # Push coordinator transitions to connected clients
    def push_status(status: ServiceStatus):
        socketio.emit('status', status.to_dict())

    def push_two_factor(pending: bool):
        socketio.emit('two_factor', {'pending': pending})

    runner.coordinator.on_change = push_status
    runner.coordinator.bridge.on_change = push_two_factor

    # ==================== Data API ====================

    @app.route('/api/guests', methods=['GET'])
    def get_guests():
        """Returns all guests for today"""
        guests = runner.guests()
        status = runner.status()
        if guests is None:
            return _not_ready(status)

        payload = status.to_dict()
        return jsonify({
            'guests': [g.to_dict() for g in guests],
            'count': len(guests),
            'last_refresh_time': payload['last_refresh_time'],
            'next_refresh_in': payload['next_refresh_in'],
        })

    @app.route('/api/rooms', methods=['GET'])
    def get_rooms():
        """Returns guests grouped by room type"""
        rooms = runner.rooms()
        status = runner.status()
        if rooms is None:
            return _not_ready(status)

        payload = status.to_dict()
        return jsonify({
            'rooms': rooms,
            'last_refresh_time': payload['last_refresh_time'],
            'next_refresh_in': payload['next_refresh_in'],
        })

    # ==================== Service API ====================

    @app.route('/api/status', methods=['GET'])
    def get_status():
        """Returns server and cache status"""
        payload = runner.status().to_dict()
        payload['status'] = 'running'
        payload['auto_refresh_status'] = (
            'enabled' if payload['auto_refresh_enabled']
            else 'disabled (manual refresh required)'
        )
        return jsonify(payload)

    @app.route('/api/health', methods=['GET'])
    def health():
        """Health check endpoint"""
        return jsonify({
            'status': 'healthy',
            'uptime': time.monotonic() - started_at,
            'timestamp': _now_iso(),
        })

    @app.route('/api/2fa', methods=['POST'])
    def submit_two_factor():
        """Submit 2FA code for the ongoing refresh"""
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = {}
        code = str(data.get('code') or '').strip()

        if not code or not runner.submit_code(code):
            return jsonify({
                'error': 'Invalid request',
                'message': 'No 2FA code provided or no 2FA verification in progress',
            }), 400

        return jsonify({'message': '2FA code submitted', 'timestamp': _now_iso()})

    @app.route('/api/refresh', methods=['POST'])
    def force_refresh():
        """Force a manual refresh in the background"""
        outcome = runner.request_refresh()
        if outcome is TriggerOutcome.BUSY:
            return jsonify({
                'error': 'Refresh already in progress',
                'message': 'Please wait for the current refresh to complete',
            }), 429

        return jsonify({'message': 'Refresh started', 'timestamp': _now_iso()})

    # ==================== WebSocket Events ====================

    @socketio.on('connect')
    def handle_connect():
        """Handle client connection"""
        emit('status', runner.status().to_dict())

    return app, socketio
