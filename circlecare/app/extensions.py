"""
extensions.py: Flask extension singletons.

Initialises SQLAlchemy and marshmallow as module-level objects so they can be
imported anywhere without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` or `ma` from here wherever needed.

    from circlecare.app.extensions import db, ma

Do not pass the app object directly to SQLAlchemy() or Marshmallow() at
import time; that would prevent running tests with a separate test app.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Marshmallow instance: used by the response schemas in
# app/schemas/responses.py, which only run inside a request.
#
# IMPORTANT, schema inheritance rule:
#   Request validation schemas (circle_schema.py, expense_schema.py, ...)
#   inherit from marshmallow.Schema directly, NOT from ma.Schema, so unit
#   tests can load them without a Flask application context.
#
#   Correct:
#       from marshmallow import Schema, fields
#       class CreateExpenseSchema(Schema): ...
#
#   Only response serializers may use ma.Schema.
ma = Marshmallow()
