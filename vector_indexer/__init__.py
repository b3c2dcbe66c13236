"""Text embedding, vector indexing and nearest-neighbour query pipeline."""

__version__ = "0.1.0"
