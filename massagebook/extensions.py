"""Shared Flask extensions for the reservation service."""
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

# SQLAlchemy handle shared across the app; services receive db.session explicitly.
db = SQLAlchemy()
