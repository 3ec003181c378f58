"""Request handlers grouped by feature."""
