"""
Gift Suggest - Flask app serving verified gift suggestions and personal notes.
"""
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from . import config
from .personal_note import personal_note
from .suggest_gifts import suggest_gifts, utc_now_iso

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(name)s %(levelname)s %(message)s")


def create_app() -> Flask:
    app = Flask(__name__)
    CORS(app, supports_credentials=False)

    app.add_url_rule("/suggest-gifts", "suggest_gifts", suggest_gifts, methods=["GET", "POST", "OPTIONS"])
    app.add_url_rule("/generate-personal-note", "personal_note", personal_note, methods=["POST", "OPTIONS"])

    @app.route("/health", methods=["GET", "OPTIONS"])
    def health():
        if request.method == "OPTIONS":
            return ("", 204)
        return jsonify({"ok": True, "timestamp": utc_now_iso()})

    @app.errorhandler(405)
    def method_not_allowed(_e):
        return jsonify({"success": False, "error": "Method not allowed"}), 405

    @app.errorhandler(404)
    def not_found(_e):
        return jsonify({"success": False, "error": "Not found"}), 404

    return app


app = create_app()


if __name__ == "__main__":
    app.run()
