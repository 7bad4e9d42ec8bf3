"""On-disk storage for uploaded binary content."""
