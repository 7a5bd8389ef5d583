"""Internal implementation of `dbstatement`. Nothing in here is public API."""
