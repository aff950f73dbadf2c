"""Pick which game saves to upload and download from a backend prediction."""

__version__ = "0.1.0"
