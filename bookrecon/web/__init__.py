"""Reference catalog web service."""
