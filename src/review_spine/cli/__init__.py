"""Command line interface for review-spine."""
