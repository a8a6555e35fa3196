import logging
import os
from typing import Callable, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify

from job_storage import PersistentJobStorage
from studygen.api import studygen_bp
from studygen.config import Settings, load_settings, log_configuration
from studygen.llm import ModelInvoker
from studygen.storage import JobRepository

load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

# Headroom so oversized uploads reach the PDF validator and get a JSON 413
UPLOAD_OVERHEAD_BYTES = 1024 * 1024

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[PersistentJobStorage] = None,
    invoker_factory: Optional[Callable[[], ModelInvoker]] = None,
) -> Flask:
    settings = settings or load_settings()
    log_configuration("studygen", settings)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_file_size_bytes + UPLOAD_OVERHEAD_BYTES

    if storage is None:
        storage = PersistentJobStorage(
            prefix="studygen", redis_url=settings.redis_url or "", ttl=settings.job_ttl
        )
    app.extensions["studygen_settings"] = settings
    app.extensions["studygen_jobs"] = JobRepository(storage)
    if invoker_factory is not None:
        app.extensions["studygen_invoker_factory"] = invoker_factory

    app.register_blueprint(studygen_bp)

    @app.after_request
    def add_security_headers(response):
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    @app.errorhandler(413)
    def too_large(_error):
        return jsonify(
            {"error": f"File exceeds maximum size limit of {settings.max_file_size_mb}MB."}
        ), 413

    return app


app = create_app()

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=int(os.getenv("PORT", "5000")))
