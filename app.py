# -*- coding: utf-8 -*-
"""Flask web application for the Asset Map"""
import html
import json
import logging
import os
from typing import Optional

from flask import Flask, Response, jsonify, redirect, request
from pydantic import ValidationError
from sqlalchemy import text

from analysis.detail_view import MapClicked, MarkerClicked, MarkerDoubleClicked, ViewportChanged
from config import Config
from config_validator import MapEventRequest
from data_preparation.asset_loader import save_payload
from database import db
from main import AssetMapTool
from utils.metrics import metrics_payload
from utils.projection import Viewport

logger = logging.getLogger(__name__)

CONFIGURE_PAGE = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Configure assets</title></head>
<body>
<h1>Configure assets</h1>
<p>POST a JSON document to <code>/api/assets</code>:</p>
<pre>{"title": "IT Assets Map",
 "assets": [{"name": "Server 1", "city": "Austin", "state": "TX", "notes": "Rack 4"}],
 "remoteSource": {"enabled": false, "url": "https://example.com/assets.json"}}</pre>
<p>Then open <a href="/">the map</a>.</p>
</body>
</html>
"""


def validation_message(error: ValidationError) -> str:
    """First human-readable error of a pydantic validation failure"""
    first = error.errors()[0]
    msg = str(first.get('msg', 'Invalid request'))
    return msg.replace('Value error, ', '', 1)


def fallback_page(title: str, result) -> str:
    """Plain asset list shown when the map itself cannot be produced"""
    rows = []
    for group in (result.groups if result else []):
        for asset in group.assets:
            rows.append(f"<li>{html.escape(asset.name)} ({html.escape(asset.city)}, {html.escape(asset.state)})</li>")
    warnings = ''.join(f"<p class=\"warning\">{html.escape(w)}</p>" for w in (result.warnings if result else []))
    return (f"<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>{html.escape(title)}</title></head>"
            f"<body><h1>{html.escape(title)}</h1>{warnings}<ul>{''.join(rows)}</ul></body></html>")


def _detail_view(state):
    """The part of the detail-view state that changes what the page draws"""
    return state['state'], state['active_group'], state['overlay']


def create_app(config_class=Config, tool: Optional[AssetMapTool] = None):
    """Create and configure the Flask app."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.config['JSON_AS_ASCII'] = False
    app.config['MAX_CONTENT_LENGTH'] = config_class.MAX_PAYLOAD_BYTES

    config = config_class()
    with app.app_context():
        db.initialize(config.DATABASE_URL)

    engine = tool or AssetMapTool(config)

    def _viewport_from_args() -> Viewport:
        viewport = engine.default_viewport()
        try:
            width = int(request.args.get('width', viewport.width))
            height = int(request.args.get('height', viewport.height))
        except ValueError:
            return viewport
        return Viewport(viewport.center, viewport.zoom, max(1, width), max(1, height),
                        viewport.min_zoom, viewport.max_zoom)

    def _ensure_session(reload: bool = False):
        if reload or engine.result is None:
            result = engine.load_and_render(config.DATA_FILE, viewport=_viewport_from_args())
            return engine.result or result
        return engine.result

    @app.route('/')
    def index():
        if not os.path.exists(config.DATA_FILE):
            return redirect('/configure')
        result = _ensure_session()
        page = engine.render_html()
        if page is None:
            return Response(fallback_page(engine.title, result), mimetype='text/html')
        return Response(page, mimetype='text/html')

    @app.route('/configure')
    def configure():
        return Response(CONFIGURE_PAGE, mimetype='text/html')

    @app.route('/api/assets', methods=['GET'])
    def get_assets():
        if not os.path.exists(config.DATA_FILE):
            return jsonify({'error': 'Assets file not found'}), 404
        try:
            with open(config.DATA_FILE, 'r', encoding='utf-8') as f:
                return jsonify(json.load(f))
        except (OSError, ValueError) as e:
            logger.error(f"Unable to read assets file: {e}")
            return jsonify({'error': 'Assets file unreadable'}), 500

    @app.route('/api/assets', methods=['POST'])
    def save_assets():
        payload = request.get_json(silent=True)
        if payload is None:
            return jsonify({'error': 'Request body must be valid JSON'}), 400
        try:
            save_payload(config.DATA_FILE, payload)
        except ValidationError as e:
            return jsonify({'error': validation_message(e)}), 400
        except ValueError as e:
            return jsonify({'error': str(e)}), 400
        except OSError as e:
            logger.error(f"Unable to write assets file: {e}", exc_info=True)
            return jsonify({'error': 'Unable to save assets'}), 500
        engine.invalidate()
        return jsonify({'message': 'Assets saved successfully'}), 201

    @app.route('/api/map', methods=['GET'])
    def get_map():
        if not os.path.exists(config.DATA_FILE):
            return jsonify({'error': 'Assets file not found'}), 404
        reload = request.args.get('reload', 'false').lower() == 'true'
        result = _ensure_session(reload)
        map_html = engine.render_html(embed=True)
        return jsonify({
            'status': 'ok' if result.groups else 'empty',
            'title': result.title,
            'map_html': map_html,
            'warnings': list(result.warnings),
            'markers': [m.to_dict() for m in engine.renderer.markers.values()],
            'camera': result.camera.to_dict(),
            'summary': result.summary(),
            'state': engine.controller.get_state() if engine.controller else None,
        })

    @app.route('/api/map/events', methods=['POST'])
    def map_event():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify({'error': 'Request body must be a JSON object'}), 400
        try:
            req = MapEventRequest(**body)
        except ValidationError as e:
            return jsonify({'error': validation_message(e)}), 400
        controller = engine.controller
        if controller is None:
            return jsonify({'error': 'No map loaded; request /api/map first'}), 409
        before = _detail_view(controller.get_state())

        if req.type in ('click', 'dblclick') and req.group is None:
            effects = engine.handle_click(req.x, req.y, double=req.type == 'dblclick')
        elif req.type == 'click':
            effects = engine.dispatch(MarkerClicked(req.group))
        elif req.type == 'dblclick':
            effects = engine.dispatch(MarkerDoubleClicked(req.group))
        elif req.type == 'map_click':
            effects = engine.dispatch(MapClicked())
        else:
            effects = engine.dispatch(ViewportChanged(tuple(req.center), req.zoom))

        state = (engine.controller or controller).get_state()
        # ?view=page answers with a full page the map script swaps in
        full_page = request.args.get('view') == 'page'
        return jsonify({
            'state': state['state'],
            'active_group': state['active_group'],
            'overlay': state['overlay'],
            'effects': [e.to_dict() for e in effects],
            'redraw': _detail_view(state) != before,
            'map_html': engine.render_html(embed=not full_page),
        })

    @app.route('/metrics')
    def metrics():
        body, content_type = metrics_payload()
        return Response(body, content_type=content_type)

    @app.route('/healthz', methods=['GET'])
    def healthz():
        return jsonify({'status': 'ok'}), 200

    @app.route('/readyz', methods=['GET'])
    def readyz():
        # Readiness: the geocode cache database answers a query
        try:
            s = db.get_session()
            try:
                s.execute(text('SELECT 1'))
            finally:
                s.close()
            return jsonify({'status': 'ready'}), 200
        except Exception as e:
            logger.error(f"Readiness check failed: {e}")
            return jsonify({'status': 'not_ready', 'error': str(e)}), 503

    @app.teardown_appcontext
    def _remove_session(exc):
        db.close_all_sessions()

    return app


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    flask_app = create_app()
    debug_mode = os.environ.get('FLASK_DEBUG', 'false').lower() == 'true'
    flask_app.run(debug=debug_mode, port=int(os.getenv('PORT', '5001')), use_reloader=False)
