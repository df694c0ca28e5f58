"""Gallery Indexer - periodic filesystem metadata index."""

__version__ = "0.1.0"
