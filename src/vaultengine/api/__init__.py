"""HTTP API for natural language vault generation."""

from .app import create_app
from .templates import VaultTemplate, list_templates

__all__ = ["create_app", "VaultTemplate", "list_templates"]
