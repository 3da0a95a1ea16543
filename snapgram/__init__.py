"""
Snapgram: client core for a photo sharing app

Client-side image filter compositing before upload, plus optimistic
likes, follows and comments reconciled against a remote data store.
"""

__version__ = "0.1.0"
__author__ = "Sam Scarrow"
__email__ = "sam@example.com"

from .config import load_config

__all__ = [
    "load_config",
]
