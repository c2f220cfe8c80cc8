"""groundwriter: document ingestion, retrieval-augmented writing, live job status."""

__version__ = "0.1.0"
