"""Reference catalog: repository queries and business operations."""
