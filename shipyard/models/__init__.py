"""
Shipyard Work Order Console
Model package — shared SQLAlchemy instance.

Domain modules import ``db`` from here; ``create_app`` imports every module
so metadata is complete before ``db.create_all()`` and Alembic autogenerate.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
