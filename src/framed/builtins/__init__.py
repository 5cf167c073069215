"""Plugins shipped with framed itself."""
