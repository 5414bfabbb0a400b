"""
coffee_quality/data/__init__.py

Data Processing Module - Load, Clean, Split, Encode.
    - DataPreprocessor: Load, clean, split (stateless)
    - DataTransformer: Encode theo label sets đã đóng băng (stateful)
"""
from .preprocessor import DataPreprocessor, COFFEE_RATINGS_URL
from .transformer import DataTransformer

__all__ = [
    'DataPreprocessor',
    'DataTransformer',
    'COFFEE_RATINGS_URL'
]
