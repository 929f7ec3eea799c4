"""HisaabKitaab - Main Application"""

from datetime import datetime, timezone

from flask import Flask, jsonify

from config import FLASK_CONFIG
from core import get_logger, handle_errors
from database import close_db, init_db
from routes.ai_routes import ai_bp
from routes.analytics_routes import analytics_bp
from routes.call_routes import calls_bp
from routes.member_routes import members_bp
from routes.profile_routes import profile_bp
from routes.transaction_routes import transactions_bp

logger = get_logger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config.update(FLASK_CONFIG)
# Urdu text goes out as-is, not as \u escapes
app.json.ensure_ascii = False
app.teardown_appcontext(close_db)
handle_errors(app)

# Register blueprints
for blueprint in (profile_bp, transactions_bp, members_bp, ai_bp, analytics_bp, calls_bp):
    app.register_blueprint(blueprint)


# === Health Check Endpoint (for keep-alive monitoring) ===
@app.route("/health", methods=["GET"])
@app.route("/api/health", methods=["GET"])
def health_check():
    """Simple health check endpoint for uptime monitoring"""
    return jsonify(
        {
            "status": "ok",
            "service": "HisaabKitaab",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    ), 200


# === MAIN ===
if __name__ == "__main__":
    with app.app_context():
        init_db()

    print("\n=== HisaabKitaab Backend ===")
    print("Registered Routes:")
    for rule in app.url_map.iter_rules():
        methods = ", ".join(sorted(rule.methods - {"HEAD", "OPTIONS"}))
        print(f"  {rule.endpoint:35s} {methods:20s} {rule.rule}")
    print("============================\n")

    app.run(host="0.0.0.0", port=8000, debug=False)
