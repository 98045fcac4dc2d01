"""Command line interface."""

from familyoffice.cli.app import app

__all__ = ["app"]
