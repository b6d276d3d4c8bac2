"""Database models for the sutradb ingester."""

from .source_file import SourceFile
from .structure import PhysicalPage, StructuralNode, TextBlock

__all__ = [
    "PhysicalPage",
    "SourceFile",
    "StructuralNode",
    "TextBlock",
]
