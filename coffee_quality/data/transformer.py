"""
coffee_quality/data/transformer.py

DataTransformer: chuyển bảng dữ liệu đã clean thành ma trận đặc trưng số cho model.

Tóm tắt (Summary):
- Stateful transformer: `fit` trên tập train để "đóng băng" tập nhãn (label set) của
  từng cột categorical; `transform` áp dụng đúng tập nhãn đó lên dữ liệu mới.
- Nhãn lạ (ngoài label set đã đóng băng) ở bước transform -> ColumnTypeError,
  không tự mở rộng category.
- Hai kiểu encoding:
    'ordinal': mỗi cột categorical -> 1 cột mã số (dùng cho random forest,
               số cột đầu vào giữ nguyên)
    'onehot' : mỗi cột categorical -> k-1 cột indicator, bỏ nhãn đầu tiên làm
               reference (dùng cho hồi quy tuyến tính); k = số nhãn có mặt lúc fit

Important keywords: Args, Returns, Raises, Notes, Attributes
"""

import numpy as np
import pandas as pd
from typing import Dict, List, Tuple, Any

from ..exceptions import ColumnTypeError, ConfigError, require_columns

ENCODINGS = ('ordinal', 'onehot')


def is_categorical(series: pd.Series) -> bool:
    return isinstance(series.dtype, pd.CategoricalDtype)


def is_numeric(series: pd.Series) -> bool:
    return pd.api.types.is_numeric_dtype(series.dtype) and not is_categorical(series)


class DataTransformer:
    """
    Encode các cột đầu vào theo tập nhãn đã học từ tập train.

    Attributes:
        input_cols (List[str]): Các cột đầu vào theo thứ tự.
        encoding (str): 'ordinal' hoặc 'onehot'.
        _learned_params (dict): 'categories' (cột -> tuple nhãn), 'numerical', 'categorical',
            'feature_names', 'column_groups'.

    Methods:
        fit(df): Học kiểu cột và label sets.
        transform(df): Trả về DataFrame số (float) theo đúng thứ tự feature_names.
        fit_transform(df): fit + transform.
    """

    def __init__(self, input_cols: List[str], encoding: str = 'ordinal', logger=None):
        if encoding not in ENCODINGS:
            raise ConfigError(f"Unknown encoding '{encoding}'. Supported: {ENCODINGS}")
        self.input_cols = list(input_cols)
        self.encoding = encoding
        self.logger = logger

        self._learned_params: Dict[str, Any] = {
            'categories': {},
            'numerical': [],
            'categorical': [],
            'feature_names': [],
            'column_groups': {},
        }
        self.is_fitted = False

    @property
    def categories(self) -> Dict[str, Tuple[str, ...]]:
        return self._learned_params['categories']

    @property
    def feature_names(self) -> List[str]:
        return self._learned_params['feature_names']

    @property
    def column_groups(self) -> Dict[str, List[str]]:
        """Cột đầu vào -> danh sách cột trong ma trận đã encode."""
        return self._learned_params['column_groups']

    def fit(self, df: pd.DataFrame) -> 'DataTransformer':
        """
        Học kiểu cột và đóng băng label set của các cột categorical.

        Raises:
            SchemaError: Thiếu cột đầu vào.
            ColumnTypeError: Cột không phải numeric cũng không phải categorical.
        """
        require_columns(df, self.input_cols, context='training data')

        numerical, categorical = [], []
        categories, groups, names = {}, {}, []

        for col in self.input_cols:
            series = df[col]
            if is_categorical(series):
                categorical.append(col)
                if self.encoding == 'onehot':
                    # chỉ nhãn có mặt trong dữ liệu fit, tránh cột indicator toàn 0
                    series = series.cat.remove_unused_categories()
                labels = tuple(str(c) for c in series.cat.categories)
                categories[col] = labels
                if self.encoding == 'onehot':
                    groups[col] = [f"{col}[{label}]" for label in labels[1:]]
                else:
                    groups[col] = [col]
            elif is_numeric(series):
                numerical.append(col)
                groups[col] = [col]
            else:
                raise ColumnTypeError(
                    f"Column '{col}' has dtype {series.dtype}; expected numeric or categorical"
                )
            names.extend(groups[col])

        self._learned_params.update({
            'categories': categories,
            'numerical': numerical,
            'categorical': categorical,
            'feature_names': names,
            'column_groups': groups,
        })
        self.is_fitted = True

        if self.logger:
            self.logger.debug(
                f"Transformer fit | Encoding: {self.encoding} | Numerical: {len(numerical)} | "
                f"Categorical: {len(categorical)} | Features: {len(names)}"
            )
        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Áp dụng label sets đã học lên dữ liệu mới.

        Args:
            df (pd.DataFrame): Dữ liệu chứa đủ các cột đầu vào.

        Returns:
            pd.DataFrame: Ma trận đặc trưng float, giữ nguyên index của df.

        Raises:
            SchemaError: Thiếu cột đầu vào.
            ColumnTypeError: Nhãn categorical nằm ngoài label set đã đóng băng.
            ConfigError: Có giá trị missing trong cột đầu vào.
        """
        if not self.is_fitted:
            raise ConfigError("DataTransformer must be fit before transform")
        require_columns(df, self.input_cols, context='input data')

        na_cols = [c for c in self.input_cols if df[c].isnull().any()]
        if na_cols:
            raise ConfigError(f"Missing values in input columns: {na_cols}")

        out = {}
        for col in self.input_cols:
            if col in self.categories:
                labels = self.categories[col]
                values = df[col].astype(str)
                unseen = sorted(set(values.unique()) - set(labels))
                if unseen:
                    raise ColumnTypeError(
                        f"Column '{col}' contains labels outside the fitted label set: {unseen}"
                    )
                if self.encoding == 'onehot':
                    for label, name in zip(labels[1:], self.column_groups[col]):
                        out[name] = (values == label).to_numpy(dtype=float)
                else:
                    out[col] = pd.Categorical(values, categories=list(labels)).codes.astype(float)
            else:
                if not is_numeric(df[col]):
                    raise ColumnTypeError(f"Column '{col}' was numeric at fit time, got {df[col].dtype}")
                out[col] = df[col].to_numpy(dtype=float)

        return pd.DataFrame(out, index=df.index, columns=self.feature_names)

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.fit(df).transform(df)

    def subset(self, input_cols: List[str]) -> 'DataTransformer':
        """
        Tạo transformer mới chỉ với một phần các cột, giữ nguyên label sets đã học.

        Notes:
            - Dùng trong backward elimination: bỏ predictor nhưng không học lại categories.
        """
        missing = [c for c in input_cols if c not in self.input_cols]
        if missing:
            raise ConfigError(f"Columns not part of the fitted transformer: {missing}")

        child = DataTransformer(input_cols, encoding=self.encoding, logger=self.logger)
        groups = {c: list(self.column_groups[c]) for c in input_cols}
        child._learned_params.update({
            'categories': {c: self.categories[c] for c in input_cols if c in self.categories},
            'numerical': [c for c in input_cols if c in self._learned_params['numerical']],
            'categorical': [c for c in input_cols if c in self.categories],
            'feature_names': [name for c in input_cols for name in groups[c]],
            'column_groups': groups,
        })
        child.is_fitted = True
        return child


def encode_target(series: pd.Series) -> Tuple[np.ndarray, Tuple[str, ...]]:
    """
    Encode cột output categorical thành mã 0..k-1 theo thứ tự categories.

    Returns:
        Tuple[np.ndarray, Tuple[str, ...]]: (codes, labels)

    Raises:
        ColumnTypeError: Nếu cột không phải categorical.
    """
    if not is_categorical(series):
        raise ColumnTypeError(
            f"Output column '{series.name}' must be categorical, got {series.dtype}"
        )
    labels = tuple(str(c) for c in series.cat.categories)
    return series.cat.codes.to_numpy(), labels
