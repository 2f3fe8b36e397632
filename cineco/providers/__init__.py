"""External content providers."""
