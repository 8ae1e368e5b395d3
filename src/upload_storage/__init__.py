"""Upload Storage - pluggable storage backends for file uploads.

This package provides:
- A uniform storage contract (store, retrieve, read, delete, url)
- A Dropbox backend built on the official Dropbox SDK
- A local filesystem backend with the same contract
- The ``upload-storage`` CLI for operators
"""

__version__ = "0.1.0"
