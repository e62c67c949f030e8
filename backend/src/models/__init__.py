# Package initialization
# Import all models so they are registered on Base.metadata
from .document import Document

__all__ = [
    "Document",
]
