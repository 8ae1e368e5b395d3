"""Command line interface for upload-storage."""
