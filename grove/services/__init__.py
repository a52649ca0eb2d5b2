"""Workspace services for grove."""
