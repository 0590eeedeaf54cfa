"""
Phase Tracking Platform
Model registry: shared Flask-SQLAlchemy handle.

Usage:
    from phasetrack.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
