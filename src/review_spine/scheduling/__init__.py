"""Polling loops and the review service manager."""
