import os
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask
from flask_cors import CORS

# Load .env from project root (parent directory)
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

from alerts.logging_config import get_logger  # noqa: E402
from middleware.security_headers import init_app as init_security_headers  # noqa: E402
from routes.email_alerts import email_alerts_bp  # noqa: E402
from routes.health import health_bp  # noqa: E402

logger = get_logger(__name__)

app = Flask(__name__)

# Frontend origins allowed to call the triage API
CORS(
    app,
    origins=os.getenv(
        "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    ).split(","),
)

# ============================================================================
# SECURITY HEADERS MIDDLEWARE
# ============================================================================

init_security_headers(app)

# ============================================================================
# REGISTER BLUEPRINTS
# ============================================================================

app.register_blueprint(health_bp)
app.register_blueprint(email_alerts_bp)


# ============================================================================
# APPLICATION STARTUP
# ============================================================================

if __name__ == "__main__":
    port = int(os.getenv("PORT", "5000"))
    logger.info(f"Email alert API available at http://localhost:{port}")
    app.run(debug=False, use_reloader=False, host="0.0.0.0", port=port)
