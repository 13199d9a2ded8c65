"""
Flask web interface for the Block Coding Core.

This provides a REST API around a single editing session: build a flow
block by block, wire blocks together, read back the generated JavaScript,
run it, and save/load flows.  Every change to the flow pushes the
regenerated code to Socket.IO clients as a ``code_updated`` event.
"""

import logging
import os
import threading
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS
from flask_socketio import SocketIO

from block_coding_core.block_types import palette_as_dict
from block_coding_core.editor import Feedback, FlowEditor
from block_coding_core.flow_storage import FlowStore, export_flow, resolve_setting
from block_coding_core.models import Edge

logger = logging.getLogger(__name__)

socketio = SocketIO(cors_allowed_origins="*", async_mode='threading')


def _error(message: str, status: int = 500, **extra: Any):
    body: Dict[str, Any] = {'success': False, 'error': message}
    body.update(extra)
    return jsonify(body), status


def _feedback_response(feedback: Feedback, data: Optional[Dict[str, Any]] = None, status: int = 200):
    return jsonify({
        'success': feedback.ok,
        'feedback': feedback.to_dict(),
        'data': data or {},
    }), status


def _position(raw: Any) -> Optional[tuple]:
    if raw is None:
        return None
    if isinstance(raw, dict):
        return (float(raw.get('x', 0)), float(raw.get('y', 0)))
    return (float(raw[0]), float(raw[1]))


def create_app(editor: Optional[FlowEditor] = None, store: Optional[FlowStore] = None) -> Flask:
    """Create the Flask application around an editing session."""
    store = store or (editor.store if editor and editor.store else FlowStore())
    editor = editor or FlowEditor(store=store)
    if editor.store is None:
        editor.store = store

    app = Flask(__name__)
    app.config['SECRET_KEY'] = resolve_setting(
        'secret_key', 'BLOCKFLOW_SECRET_KEY', 'block-coding-secret-key', store)
    app.extensions['flow_editor'] = editor
    CORS(app)
    socketio.init_app(app)

    # A single editing session is shared by every request.
    lock = threading.Lock()

    def push_code(code: str) -> None:
        socketio.emit('code_updated', {'flow_id': editor.flow.id, 'code': code})

    editor.on_code_changed = push_code

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok'})

    @app.route('/api/block-types', methods=['GET'])
    def get_block_types():
        """Get the block palette and every block's parameter schema."""
        return jsonify({'success': True, 'data': palette_as_dict()})

    # ------------------------------------------------------------------
    # Current flow
    # ------------------------------------------------------------------

    @app.route('/api/flow', methods=['GET'])
    def get_flow():
        """Get the flow being edited."""
        with lock:
            return jsonify({'success': True, 'data': editor.flow.to_dict()})

    @app.route('/api/flow', methods=['PATCH'])
    def rename_flow():
        data = request.get_json(silent=True) or {}
        if not data.get('name'):
            return _error("A flow name is required", 400)
        with lock:
            editor.rename(str(data['name']))
            return jsonify({'success': True, 'data': editor.flow.to_dict()})

    @app.route('/api/flow/new', methods=['POST'])
    def new_flow():
        data = request.get_json(silent=True) or {}
        with lock:
            feedback = editor.new_flow(data.get('name') or "My Flow")
            return _feedback_response(feedback, editor.flow.to_dict())

    @app.route('/api/flow/clear', methods=['POST'])
    def clear_flow():
        with lock:
            feedback = editor.clear_canvas()
            return _feedback_response(feedback, editor.flow.to_dict())

    @app.route('/api/flow/export', methods=['GET'])
    def export_current_flow():
        with lock:
            text = editor.export_flow()
        return Response(text, mimetype='application/json')

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    @app.route('/api/flow/blocks', methods=['GET'])
    def get_blocks():
        with lock:
            return jsonify({'success': True, 'data': [b.to_dict() for b in editor.flow.blocks]})

    @app.route('/api/flow/blocks', methods=['POST'])
    def add_block():
        """Add a block of the requested type."""
        data = request.get_json(silent=True) or {}
        block_type = data.get('type')
        if not block_type:
            return _error("A block type is required", 400)
        try:
            position = _position(data.get('position'))
        except (TypeError, ValueError, IndexError, KeyError):
            return _error("Invalid position", 400)

        with lock:
            block = editor.add_block(block_type, position)
            return jsonify({'success': True, 'data': block.to_dict()}), 201

    @app.route('/api/flow/blocks/<block_id>/params', methods=['PATCH'])
    def update_block_params(block_id):
        data = request.get_json(silent=True) or {}
        if 'key' not in data:
            return _error("A parameter key is required", 400)
        with lock:
            if not editor.update_block_params(block_id, data['key'], data.get('value')):
                return _error(f"Block {block_id} not found", 404)
            return jsonify({'success': True, 'data': editor.flow.get_block(block_id).to_dict()})

    @app.route('/api/flow/blocks/<block_id>/move', methods=['POST'])
    def move_block(block_id):
        data = request.get_json(silent=True) or {}
        try:
            position = _position(data.get('position', [0, 0]))
        except (TypeError, ValueError, IndexError, KeyError):
            return _error("Invalid position", 400)
        with lock:
            moved = editor.move_block(block_id, position)
        return jsonify({'success': moved, 'data': {'moved': moved}}), (200 if moved else 404)

    @app.route('/api/flow/blocks/<block_id>', methods=['DELETE'])
    def remove_block(block_id):
        with lock:
            feedback = editor.remove_block(block_id)
            return _feedback_response(feedback, status=200 if feedback.ok else 404)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    @app.route('/api/flow/edges', methods=['GET'])
    def get_edges():
        with lock:
            return jsonify({'success': True, 'data': [e.to_dict() for e in editor.flow.edges]})

    @app.route('/api/flow/edges', methods=['POST'])
    def add_edge():
        """Connect two blocks (output -> input)."""
        data = request.get_json(silent=True) or {}
        if not data.get('source') or not data.get('target'):
            return _error("Both source and target are required", 400)

        edge = Edge(source=data['source'], target=data['target'])
        if data.get('id'):
            edge.id = data['id']

        with lock:
            added, feedback = editor.add_edge(edge)
            if added is None:
                return _feedback_response(feedback, status=409)
            return _feedback_response(feedback, added.to_dict(), status=201)

    @app.route('/api/flow/edges/<edge_id>', methods=['DELETE'])
    def remove_edge(edge_id):
        with lock:
            removed = editor.remove_edge(edge_id)
        return jsonify({'success': removed, 'data': {'removed': removed}}), (200 if removed else 404)

    # ------------------------------------------------------------------
    # Code
    # ------------------------------------------------------------------

    @app.route('/api/code', methods=['GET'])
    def get_code():
        """Get the JavaScript generated from the current flow."""
        with lock:
            return jsonify({
                'success': True,
                'data': {
                    'code': editor.generated_code,
                    'warnings': editor.validation_warnings(),
                },
            })

    @app.route('/api/run', methods=['POST'])
    def run_code():
        with lock:
            result, feedback = editor.run_code()
        return _feedback_response(feedback, result.to_dict())

    # ------------------------------------------------------------------
    # Saved flows
    # ------------------------------------------------------------------

    @app.route('/api/flows', methods=['GET'])
    def list_flows():
        try:
            flows = editor.list_flows()
            return jsonify({
                'success': True,
                'data': [
                    {
                        'id': flow.id,
                        'name': flow.name,
                        'createdAt': flow.created_at,
                        'updatedAt': flow.updated_at,
                        'blocks': len(flow.blocks),
                        'edges': len(flow.edges),
                    }
                    for flow in flows
                ],
            })
        except Exception as e:
            logger.error(f"Failed to list flows: {e}")
            return _error(str(e))

    @app.route('/api/flows', methods=['POST'])
    def save_flow():
        """Save the flow being edited."""
        try:
            with lock:
                feedback = editor.save_flow()
                return _feedback_response(feedback, editor.flow.to_dict())
        except Exception as e:
            logger.error(f"Failed to save flow: {e}")
            return _error(str(e))

    @app.route('/api/flows/<flow_id>', methods=['GET'])
    def get_saved_flow(flow_id):
        flow = editor.store.load(flow_id)
        if flow is None:
            return _error(f"Flow {flow_id} not found", 404)
        return jsonify({'success': True, 'data': flow.to_dict()})

    @app.route('/api/flows/<flow_id>/load', methods=['POST'])
    def load_flow(flow_id):
        """Replace the flow being edited with a saved one."""
        with lock:
            feedback = editor.load_flow(flow_id)
            return _feedback_response(feedback, editor.flow.to_dict(), status=200 if feedback.ok else 404)

    @app.route('/api/flows/<flow_id>', methods=['DELETE'])
    def delete_flow(flow_id):
        deleted = editor.delete_flow(flow_id)
        return jsonify({'success': deleted, 'data': {'deleted': deleted}}), (200 if deleted else 404)

    @app.route('/api/flows/<flow_id>/export', methods=['GET'])
    def export_saved_flow(flow_id):
        flow = editor.store.load(flow_id)
        if flow is None:
            return _error(f"Flow {flow_id} not found", 404)
        return Response(export_flow(flow), mimetype='application/json')

    @app.route('/api/flows/import', methods=['POST'])
    def import_flow():
        """Import a flow document and make it the flow being edited."""
        text = request.get_data(as_text=True)
        with lock:
            feedback = editor.import_flow(text)
            return _feedback_response(feedback, editor.flow.to_dict(), status=200 if feedback.ok else 400)

    return app


def main() -> None:
    logging.basicConfig(
        level=os.environ.get('BLOCKFLOW_LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    app = create_app()
    host = os.environ.get('BLOCKFLOW_HOST', '0.0.0.0')
    port = int(os.environ.get('BLOCKFLOW_PORT', '5003'))

    print("Starting Block Coding Web Interface...")
    print(f"Access the API at: http://localhost:{port}/api/health")

    socketio.run(app, host=host, port=port, allow_unsafe_werkzeug=True)


if __name__ == '__main__':
    main()
