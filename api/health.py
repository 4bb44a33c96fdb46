"""Health check endpoint.

Reports liveness plus which tables the service is wired to. No storage
round trip is made; a missing Supabase configuration is reported, not probed.
"""

from http.server import BaseHTTPRequestHandler
import json

from src.utils.config import AppConfig

SERVICE_NAME = "tasktrack-backend"


def health_payload() -> dict:
    storage_configured = bool(AppConfig.SUPABASE_URL and AppConfig.SUPABASE_SERVICE_ROLE_KEY)
    return {
        "status": "ok" if storage_configured else "degraded",
        "service": SERVICE_NAME,
        "storage": {
            "configured": storage_configured,
            "tables": [AppConfig.TASKS_TABLE, AppConfig.QUERIES_TABLE, AppConfig.USERS_TABLE],
        },
    }


class handler(BaseHTTPRequestHandler):
    """Health check handler for Vercel serverless function."""

    def do_GET(self):
        payload = health_payload()
        self.send_response(200 if payload["status"] == "ok" else 503)
        self.send_header('Content-Type', 'application/json')
        self.end_headers()
        self.wfile.write(json.dumps(payload).encode('utf-8'))

    def do_POST(self):
        """Same as GET for health checks."""
        self.do_GET()
