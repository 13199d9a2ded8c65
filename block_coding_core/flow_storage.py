"""
Flow Storage: JSON export/import and SQLite-backed flow persistence.

Flows are stored whole, as the same JSON document that export_flow()
produces, so a stored flow and an exported one are interchangeable.

Schema:
  flows     : id, name, created_at, updated_at, flow_json
  settings  : key, value, updated_at   (overrides for environment defaults)
"""

import os
import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .exceptions import FlowFormatError
from .models import Flow


def _resolve_db_path() -> str:
    """Resolve the database path from env → default.

    Priority:
        1. BLOCKFLOW_DB_PATH environment variable
        2. ``data/flows.db`` under the current working directory
    """
    env_path = os.environ.get('BLOCKFLOW_DB_PATH', '').strip()
    if env_path:
        return env_path
    return os.path.join(os.getcwd(), 'data', 'flows.db')


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


# ─────────────────────────────────────────────────────────────────────
# Export / import
# ─────────────────────────────────────────────────────────────────────

def export_flow(flow: Flow) -> str:
    """Serialize a flow as pretty-printed JSON."""
    return json.dumps(flow.to_dict(), indent=2, ensure_ascii=False)


def import_flow(text: str) -> Flow:
    """Parse a flow previously produced by export_flow().

    Raises:
        FlowFormatError: if the text is not JSON or lacks the flow structure.
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise FlowFormatError(f"Invalid flow format: {e}")

    return flow_from_data(data)


def flow_from_data(data: Any) -> Flow:
    """Validate a decoded flow document and build a Flow from it."""
    if not isinstance(data, dict):
        raise FlowFormatError("Invalid flow format: expected a JSON object")
    if not data.get('id'):
        raise FlowFormatError("Invalid flow format: missing flow id")
    if not isinstance(data.get('blocks'), list) or not isinstance(data.get('edges'), list):
        raise FlowFormatError("Invalid flow format: blocks and edges must be lists")

    for i, block in enumerate(data['blocks']):
        if not isinstance(block, dict) or 'id' not in block or 'type' not in block:
            raise FlowFormatError(f"Invalid flow format: blocks[{i}] needs an id and a type",
                                  {'index': i})
    for i, edge in enumerate(data['edges']):
        if not isinstance(edge, dict) or 'source' not in edge or 'target' not in edge:
            raise FlowFormatError(f"Invalid flow format: edges[{i}] needs a source and a target",
                                  {'index': i})

    try:
        return Flow.from_dict(data)
    except (TypeError, ValueError, KeyError, IndexError) as e:
        raise FlowFormatError(f"Invalid flow format: {e}")


# ─────────────────────────────────────────────────────────────────────
# FlowStore: SQLite persistence
# ─────────────────────────────────────────────────────────────────────

class FlowStore:
    """Saves, loads, lists and deletes flows in a SQLite database.

    Usage:
        store = FlowStore()
        store.save(flow)
        flow = store.load(flow.id)   # Flow or None
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or _resolve_db_path()
        self.logger = logging.getLogger(__name__)
        os.makedirs(os.path.dirname(os.path.abspath(self.db_path)), exist_ok=True)

    def _get_db(self) -> sqlite3.Connection:
        """Return a connection to the flows database, creating tables if needed."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.executescript('''
            CREATE TABLE IF NOT EXISTS flows (
                id            TEXT PRIMARY KEY,
                name          TEXT NOT NULL,
                created_at    TEXT NOT NULL,
                updated_at    TEXT NOT NULL,
                flow_json     TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS settings (
                key           TEXT PRIMARY KEY,
                value         TEXT NOT NULL,
                updated_at    TEXT NOT NULL
            );
        ''')
        conn.commit()
        return conn

    # ─────────────────────────────────────────────────────────────────
    # Flow CRUD
    # ─────────────────────────────────────────────────────────────────

    def save(self, flow: Flow) -> Flow:
        """Insert or replace a flow, stamping its timestamps."""
        flow.updated_at = _now_iso()
        if not flow.created_at:
            flow.created_at = flow.updated_at

        conn = self._get_db()
        try:
            conn.execute('''
                INSERT INTO flows (id, name, created_at, updated_at, flow_json)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE
                   SET name = excluded.name,
                       updated_at = excluded.updated_at,
                       flow_json = excluded.flow_json
            ''', (flow.id, flow.name, flow.created_at, flow.updated_at, export_flow(flow)))
            conn.commit()
        finally:
            conn.close()

        self.logger.info(f"Saved flow {flow.id} ({flow.name!r})")
        return flow

    def load(self, flow_id: str) -> Optional[Flow]:
        """Load a flow by id, or None if it was never saved."""
        conn = self._get_db()
        try:
            row = conn.execute('SELECT flow_json FROM flows WHERE id = ?', (flow_id,)).fetchone()
        finally:
            conn.close()

        if row is None:
            return None
        return import_flow(row['flow_json'])

    def list(self) -> List[Flow]:
        """Return every saved flow, most recently updated first."""
        conn = self._get_db()
        try:
            rows = conn.execute('''
                SELECT id, flow_json
                  FROM flows
                 ORDER BY updated_at DESC, rowid DESC
            ''').fetchall()
        finally:
            conn.close()

        flows = []
        for row in rows:
            try:
                flows.append(import_flow(row['flow_json']))
            except FlowFormatError as e:
                self.logger.error(f"Skipping unreadable flow {row['id']}: {e}")
        return flows

    def delete(self, flow_id: str) -> bool:
        """Delete a flow. Returns False if it did not exist."""
        conn = self._get_db()
        try:
            cursor = conn.execute('DELETE FROM flows WHERE id = ?', (flow_id,))
            conn.commit()
            deleted = cursor.rowcount > 0
        finally:
            conn.close()

        if deleted:
            self.logger.info(f"Deleted flow {flow_id}")
        return deleted

    # ─────────────────────────────────────────────────────────────────
    # Settings KV store  (database overrides for environment defaults)
    # ─────────────────────────────────────────────────────────────────
    #
    # Known keys (stored lowercase):
    #   exec_timeout  – JavaScript executor timeout in seconds
    #   node_binary   – path to the Node.js executable
    #   secret_key    – Flask secret key for the web interface
    # ─────────────────────────────────────────────────────────────────

    def get_setting(self, key: str) -> Optional[str]:
        """Return a single setting value, or None if unset."""
        conn = self._get_db()
        try:
            row = conn.execute(
                'SELECT value FROM settings WHERE key = ?', (key.lower(),)
            ).fetchone()
        finally:
            conn.close()
        return row['value'] if row else None

    def set_setting(self, key: str, value: str) -> Dict[str, Any]:
        """Upsert a setting. Returns the saved record."""
        now = _now_iso()
        conn = self._get_db()
        try:
            conn.execute('''
                INSERT INTO settings (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE
                   SET value = excluded.value,
                       updated_at = excluded.updated_at
            ''', (key.lower(), value, now))
            conn.commit()
        finally:
            conn.close()
        return {'key': key.lower(), 'value': value, 'updated_at': now}

    def delete_setting(self, key: str) -> bool:
        """Remove a setting (reverts to env / default)."""
        conn = self._get_db()
        try:
            cursor = conn.execute('DELETE FROM settings WHERE key = ?', (key.lower(),))
            conn.commit()
            deleted = cursor.rowcount > 0
        finally:
            conn.close()
        return deleted


def resolve_setting(key: str, env_var: str, default: str,
                    store: Optional[FlowStore] = None) -> str:
    """Three-tier resolution: store → env → default."""
    # 1. Database (web-UI override)
    if store is not None:
        db_val = store.get_setting(key)
        if db_val is not None:
            return db_val
    # 2. Environment variable
    env_val = os.environ.get(env_var, '').strip()
    if env_val:
        return env_val
    # 3. Hard-coded default
    return default
