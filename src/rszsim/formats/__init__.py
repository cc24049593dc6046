"""rszsim formats package - binary format parsers."""
from .rsz import ObjectGraph, RSZFile, RSZWriter, SchemaRegistry

__all__ = [
    # RSZ object graphs
    'RSZFile', 'RSZWriter', 'ObjectGraph', 'SchemaRegistry',
]
