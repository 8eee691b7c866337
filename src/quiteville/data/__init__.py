"""Bundled zone templates and milestone definitions."""
