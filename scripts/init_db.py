#!/usr/bin/env python3
"""Create the users, shops and appointments tables."""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from massagebook import create_app
from massagebook.extensions import db

def init_database():
    app = create_app()
    with app.app_context():
        db.create_all()
        print(f"Tables initialized on {db.engine.url.render_as_string(hide_password=True)}")

if __name__ == "__main__":
    init_database()
