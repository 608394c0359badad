# server/app.py
from flask import Flask, jsonify, request, send_file
from dotenv import load_dotenv
import os, json
import logging
from collections import deque

from ssidroam.common import get_log_file_path, get_summary_path

log = logging.getLogger(__name__)

DEFAULT_LOG_LINES = 200
MAX_LOG_LINES = 5000


def create_app(summary_path=None, log_path=None, api_key=None):
    """
    Read-only status UI for the roaming loop. It shares nothing with the
    loop in memory; everything comes from the summary and log files.
    """
    app = Flask(__name__)
    app.config["SUMMARY_PATH"] = summary_path or get_summary_path()
    app.config["LOG_PATH"] = log_path or get_log_file_path()
    if api_key is None:
        load_dotenv(".env")
        api_key = os.getenv("ROAM_API_KEY")
    app.config["API_KEY"] = api_key

    @app.before_request
    def require_api_key_for_api():
        # Only enforce on /api routes, and only when a key is configured
        expected = app.config["API_KEY"]
        if not expected or not request.path.startswith("/api/"):
            return
        key = request.headers.get("X-API-Key")
        if not key or key != expected:
            return jsonify({"error": "Unauthorized"}), 401

    @app.after_request
    def add_no_cache_headers(response):
        if request.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response

    @app.route("/api/status")
    def status():
        summary_file = app.config["SUMMARY_PATH"]
        if not os.path.exists(summary_file):
            return jsonify({"error": "No cycle summary yet"}), 404

        mtime = os.path.getmtime(summary_file)
        with open(summary_file) as f:
            data = json.load(f)
        return jsonify({"mtime": mtime, "data": data})

    # tail of the controller's own log file
    @app.route("/api/logs")
    def get_logs():
        try:
            count = int(request.args.get("lines", DEFAULT_LOG_LINES))
        except ValueError:
            return jsonify({"error": "lines must be an integer"}), 400
        count = max(1, min(count, MAX_LOG_LINES))

        log_file = app.config["LOG_PATH"]
        if not os.path.exists(log_file):
            return jsonify({"log": "", "lines": 0})
        with open(log_file, errors="replace") as f:
            tail = deque(f, maxlen=count)
        return jsonify({"log": "".join(tail), "lines": len(tail)})

    @app.route("/api/download_log")
    def download_log():
        log_file = app.config["LOG_PATH"]
        if not os.path.exists(log_file):
            return jsonify({"error": "Log file not found"}), 404
        return send_file(log_file, as_attachment=True, conditional=False)

    return app


def run_server(port=8443, host="0.0.0.0", cert_dir=None):
    """Run the Flask server, with HTTPS when self-signed certs are present."""
    cert_dir = cert_dir or os.path.join(os.path.dirname(__file__), "certs")
    cert_path = os.path.join(cert_dir, "server.crt")
    key_path = os.path.join(cert_dir, "server.key")

    if not os.path.exists(cert_path) or not os.path.exists(key_path):
        log.warning("HTTPS certificate not found in %s, falling back to HTTP. Generate one with: "
                    "openssl req -x509 -newkey rsa:4096 -keyout certs/server.key -out certs/server.crt "
                    "-days 365 -nodes -subj '/CN=localhost'", cert_dir)
        ssl_context = None
    else:
        ssl_context = (cert_path, key_path)
        log.info("Using HTTPS certificate from %s", cert_dir)

    create_app().run(host=host, port=port, ssl_context=ssl_context, use_reloader=False)
