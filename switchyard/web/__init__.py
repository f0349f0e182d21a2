"""HTTP front door for the dispatcher."""

from switchyard.web.app import build_dispatcher, create_app, outcome_response
from switchyard.web.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "build_dispatcher", "create_app", "outcome_response"]
