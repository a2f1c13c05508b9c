"""
Bingo Goal Engine
SQLAlchemy extension instance shared by all models.

Usage:
    from bingo.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
