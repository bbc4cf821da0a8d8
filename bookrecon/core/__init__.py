"""Shared plumbing: errors, logging and API session."""
