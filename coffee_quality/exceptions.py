"""
coffee_quality/exceptions.py

Các lỗi dùng chung cho toàn bộ pipeline.

Mỗi lỗi đồng thời kế thừa built-in exception tương ứng để caller có thể bắt
theo kiểu quen thuộc (KeyError, TypeError, ValueError, LinAlgError).
"""
import numpy as np


class CoffeeQualityError(Exception):
    """Base class cho mọi lỗi của pipeline."""


class SchemaError(CoffeeQualityError, KeyError):
    """Cột được tham chiếu không tồn tại trong bảng dữ liệu."""

    def __str__(self):
        # KeyError mặc định repr() message, giữ nguyên text cho log
        return str(self.args[0]) if self.args else ''


class ColumnTypeError(CoffeeQualityError, TypeError):
    """Kiểu cột không phù hợp với thao tác (vd: target không phải categorical)."""


class ConfigError(CoffeeQualityError, ValueError):
    """Tham số không hợp lệ: tỷ lệ split, số class, độ dài vector..."""


class SingularMatrixError(CoffeeQualityError, np.linalg.LinAlgError):
    """Ma trận thiết kế của hồi quy bị suy biến (predictors cộng tuyến hoàn toàn)."""


def require_columns(df, columns, context: str = 'table') -> None:
    """
    Kiểm tra tất cả `columns` có trong `df`.

    Raises:
        SchemaError: Nếu thiếu ít nhất một cột.
    """
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise SchemaError(f"Columns not found in {context}: {missing}")


__all__ = [
    'CoffeeQualityError',
    'SchemaError',
    'ColumnTypeError',
    'ConfigError',
    'SingularMatrixError',
    'require_columns',
]
