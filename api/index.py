"""
/api/index.py - Missing products tracker API

Vercel Serverless Function

POST /api/index?action=add           Body: {"productName", "supplierName", "priority"?}
POST /api/index?action=getMissing
POST /api/index?action=markReceived  Body: {"id"}
POST /api/index?action=delete        Body: {"id"}
POST /api/index?action=getHistory
POST /api/index?action=getMetrics
POST /api/index?action=chatWithGroq  Body: {"message", "history"?}

Errors come back as {"error": "..."} with 400 (bad request),
404 (unknown product) or 500 (store / completion failure).
"""

from http.server import BaseHTTPRequestHandler
import json
import logging
import os
from urllib.parse import urlparse, parse_qs

from .store import SupabaseStore
from .groq import GroqClient
from . import tracker


logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    format='%(asctime)s %(levelname)s %(name)s: %(message)s'
)
logger = logging.getLogger(__name__)


INVALID_ACTION = 'invalid action'

ACTIONS = {
    'add': lambda store, chat, body: tracker.add_product(store, body),
    'getMissing': lambda store, chat, body: tracker.get_missing(store, body),
    'markReceived': lambda store, chat, body: tracker.mark_received(store, body),
    'delete': lambda store, chat, body: tracker.delete_product(store, body),
    'getHistory': lambda store, chat, body: tracker.get_history(store, body),
    'getMetrics': lambda store, chat, body: tracker.get_metrics(store, body),
    'chatWithGroq': lambda store, chat, body: tracker.chat_with_groq(store, chat, body),
}


def parse_body(raw: bytes) -> dict:
    """Decode the JSON request body. Empty bodies are an empty object."""
    if not raw or not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except ValueError:
        raise tracker.ValidationError("request body must be valid JSON")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise tracker.ValidationError("request body must be a JSON object")
    return data


def dispatch(action: str, body: dict, store, chat_client) -> tuple[int, object]:
    """
    Run one action and map the outcome to (status, payload).

    Args:
        action: Value of the `action` query parameter
        body: Decoded JSON body
        store: Record store client
        chat_client: Completion client (only used by chatWithGroq)

    Returns:
        Tuple of HTTP status and JSON-serializable payload
    """
    logger.info("Action received: %s", action)

    run = ACTIONS.get(action)
    if run is None:
        logger.warning("Rejected unknown action: %r", action)
        return 400, {'error': INVALID_ACTION}

    try:
        return 200, run(store, chat_client, body)
    except tracker.ActionError as e:
        logger.warning("Action %s refused: %s", action, e)
        return e.status, {'error': str(e)}
    except Exception as e:
        logger.exception("Action %s failed", action)
        return 500, {'error': str(e)}


class handler(BaseHTTPRequestHandler):
    """Vercel serverless function handler"""

    def do_POST(self):
        """POST /api/index?action=... - Run a tracker action"""
        params = parse_qs(urlparse(self.path).query)
        action = params.get('action', [None])[0]

        try:
            content_length = int(self.headers.get('Content-Length', 0))
        except ValueError:
            self._send_json(400, {'error': 'invalid Content-Length header'})
            return

        try:
            body = parse_body(self.rfile.read(max(content_length, 0)))
        except tracker.ValidationError as e:
            self._send_json(400, {'error': str(e)})
            return

        status, payload = dispatch(action, body, SupabaseStore(), GroqClient())
        self._send_json(status, payload)

    def do_OPTIONS(self):
        """Handle CORS preflight"""
        self.send_response(200)
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Access-Control-Allow-Methods', 'POST, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type')
        self.end_headers()

    def _send_json(self, status: int, payload) -> None:
        data = json.dumps(payload).encode()

        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(data)))
        self.send_header('Access-Control-Allow-Origin', '*')
        self.end_headers()

        self.wfile.write(data)

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)
