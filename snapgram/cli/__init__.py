"""
CLI commands for Snapgram
"""

from .main import main
from .db_commands import db

__all__ = ['main', 'db']
