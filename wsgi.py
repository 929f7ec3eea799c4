"""
WSGI entry point for Gunicorn (`gunicorn wsgi:app`)
Run directly for a local development server
"""

import os
import sys
from pathlib import Path

# Backend modules import each other as top-level modules
backend_dir = Path(__file__).parent / "backend"
sys.path.insert(0, str(backend_dir))

from app import create_app

app = create_app()

if __name__ == "__main__":
    app.run(host=os.environ.get("FLASK_HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))
