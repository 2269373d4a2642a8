"""Relay ingestion endpoint"""

from .forwarder import Forwarder, LoggingForwarder
from .main import app, create_app, parse_track_request

__all__ = ["app", "create_app", "parse_track_request", "Forwarder", "LoggingForwarder"]
