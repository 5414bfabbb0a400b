"""
coffee_quality/data/preprocessor.py

Data Preprocessing Module - Giai đoạn 1: Data Engineering (Stateless)

Module này chịu trách nhiệm:
    - Load dữ liệu coffee ratings từ file hoặc URL
    - Làm sạch dữ liệu (chọn cột, bỏ missing, lọc outlier altitude, ép kiểu categorical)
    - Chia dữ liệu thành Train/Test sets bằng hoán vị ngẫu nhiên có seed

Đặc điểm:
    - Stateless: Không học tham số từ dữ liệu
    - Pure: mọi method trả về DataFrame mới, không sửa input

Example:
    >>> preprocessor = DataPreprocessor(config, logger)
    >>> df = preprocessor.load_data(COFFEE_RATINGS_URL)
    >>> df_clean = preprocessor.clean_data(df)
    >>> train_df, test_df = preprocessor.split_data(df_clean)
"""
import numpy as np
import pandas as pd
from typing import Tuple, Dict, List, Optional

from ..exceptions import ConfigError, require_columns
from ..utils import IOHandler

COFFEE_RATINGS_URL = (
    "https://raw.githubusercontent.com/rfordatascience/tidytuesday/master/"
    "data/2020/2020-07-07/coffee_ratings.csv"
)

SCORE_COLUMNS = [
    'aroma', 'flavor', 'aftertaste', 'acidity', 'body', 'balance',
    'uniformity', 'clean_cup', 'sweetness', 'cupper_points',
]

CATEGORICAL_COLUMNS = ['species', 'country_of_origin', 'processing_method', 'variety', 'color']

DEFAULT_COLUMNS = (
    ['total_cup_points', 'species', 'country_of_origin', 'processing_method', 'variety']
    + SCORE_COLUMNS
    + ['moisture', 'color', 'altitude_mean_meters']
)

ALTITUDE_COL = 'altitude_mean_meters'


class DataPreprocessor:
    """
    Data Preprocessor - Giai đoạn 1: Data Engineering (Stateless).

    Nhiệm vụ chính:
        1. Load Data: Đọc dữ liệu từ file local hoặc URL
        2. Clean: chọn cột, drop missing, lọc altitude, ép kiểu categorical
        3. Split Train/Test: hoán vị ngẫu nhiên với seed cố định

    Attributes:
        config (Dict): Configuration dictionary từ config.yaml
        logger: Logger instance để ghi log
    """

    def __init__(self, config: Dict, logger=None):
        """
        Khởi tạo DataPreprocessor.

        Args:
            config (Dict): Configuration dictionary chứa các settings:
                - data.source: path/URL mặc định
                - cleaning.columns / cleaning.categorical_columns / cleaning.altitude_bound
                - split.train_fraction / split.seed
            logger: Logger instance (optional)
        """
        self.config = config
        self.logger = logger
        self.cleaning_cfg = config.get('cleaning', {}) or {}
        self.split_cfg = config.get('split', {}) or {}

    def load_data(self, source: Optional[str] = None) -> pd.DataFrame:
        """
        Load dữ liệu thô từ file hoặc URL.

        Args:
            source (str, optional): Đường dẫn file hoặc URL. Nếu None dùng `data.source` trong config.

        Returns:
            pd.DataFrame: DataFrame chứa dữ liệu đã load

        Raises:
            FileNotFoundError: Nếu file local không tồn tại
            ValueError: Nếu định dạng file không được hỗ trợ
            IOError: Nếu có lỗi khi tải từ URL
        """
        source = source or (self.config.get('data', {}) or {}).get('source') or COFFEE_RATINGS_URL

        if self.logger:
            self.logger.info("=" * 60)
            self.logger.info("STAGE 1: LOAD & CLEAN")

        try:
            df = IOHandler.read_data(source)
        except Exception as e:
            if self.logger:
                self.logger.error(f"Load Error: {e}")
            raise

        if self.logger:
            self.logger.info(f"Loaded data: {df.shape[0]} rows, {df.shape[1]} columns")
        return df

    def clean_data(self, df: pd.DataFrame, columns: Optional[List[str]] = None,
                   altitude_bound: Optional[float] = None) -> pd.DataFrame:
        """
        Làm sạch dữ liệu (Hard rules - Stateless).

        Các bước xử lý:
            1. Chuẩn hóa tên cột (strip whitespace)
            2. Chỉ giữ các cột trong whitelist
            3. Loại bỏ rows có missing ở bất kỳ cột nào được giữ
            4. Loại bỏ rows có altitude_mean_meters >= altitude_bound
            5. Ép các cột text được chỉ định sang categorical (unordered)

        Args:
            df (pd.DataFrame): DataFrame thô
            columns (List[str], optional): Whitelist cột. Default: `cleaning.columns`.
            altitude_bound (float, optional): Ngưỡng altitude. Default: `cleaning.altitude_bound`.

        Returns:
            pd.DataFrame: DataFrame đã được làm sạch (copy mới)

        Raises:
            SchemaError: Nếu whitelist chứa cột không có trong df
        """
        df = df.copy()
        df.columns = df.columns.str.strip()

        if columns is None:
            columns = self.cleaning_cfg.get('columns', DEFAULT_COLUMNS)
        if altitude_bound is None:
            altitude_bound = self.cleaning_cfg.get('altitude_bound', 3500)
        categorical_cols = self.cleaning_cfg.get('categorical_columns', CATEGORICAL_COLUMNS)
        altitude_col = self.cleaning_cfg.get('altitude_col', ALTITUDE_COL)

        columns = list(dict.fromkeys(columns))
        require_columns(df, columns, context='raw data')

        df = df[columns].copy()
        initial_rows = len(df)
        df = df.dropna(how='any')
        dropped_missing = initial_rows - len(df)

        dropped_outliers = 0
        if altitude_col in df.columns:
            before = len(df)
            df = df[df[altitude_col] < altitude_bound].copy()
            dropped_outliers = before - len(df)

        for col in categorical_cols:
            if col not in df.columns:
                continue
            values = df[col].astype(str).str.strip()
            labels = sorted(values.unique())
            df[col] = values.astype(pd.CategoricalDtype(categories=labels, ordered=False))

        if self.logger:
            self.logger.info(
                f"Shape: {df.shape} | Dropped missing: {dropped_missing} | "
                f"Dropped {altitude_col} >= {altitude_bound}: {dropped_outliers}"
            )
            self.logger.info("Data cleaning completed")

        return df

    def split_data(self, df: pd.DataFrame, train_fraction: Optional[float] = None,
                   seed: Optional[int] = None) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """
        Chia dữ liệu thành Train/Test bằng hoán vị ngẫu nhiên có seed.

        Số dòng train = round(n * p), test = phần còn lại. Cùng (df, p, seed)
        luôn cho cùng một phép chia.

        Args:
            df (pd.DataFrame): DataFrame cần chia
            train_fraction (float, optional): Tỷ lệ train p trong (0, 1). Default: `split.train_fraction`.
            seed (int, optional): Random seed. Default: `split.seed`.

        Returns:
            Tuple[pd.DataFrame, pd.DataFrame]: (train_df, test_df)

        Raises:
            ConfigError: Nếu p nằm ngoài khoảng (0, 1)
        """
        if self.logger:
            self.logger.info("=" * 60)
            self.logger.info("STAGE 2: SPLIT")

        if train_fraction is None:
            train_fraction = self.split_cfg.get('train_fraction', 0.7)
        if seed is None:
            seed = self.split_cfg.get('seed', 123)

        try:
            p = float(train_fraction)
        except (TypeError, ValueError):
            raise ConfigError(f"train_fraction must be a number, got {train_fraction!r}")
        if not 0.0 < p < 1.0:
            raise ConfigError(f"train_fraction must be in (0, 1), got {train_fraction}")

        n = len(df)
        n_train = int(np.floor(n * p + 0.5))

        rng = np.random.default_rng(seed)
        permutation = rng.permutation(n)
        train_idx = np.sort(permutation[:n_train])
        test_idx = np.sort(permutation[n_train:])

        train_df = df.iloc[train_idx].copy()
        test_df = df.iloc[test_idx].copy()

        if self.logger:
            self.logger.info(f"Split: Train={len(train_df)} ({p * 100:.1f}%) | Test={len(test_df)} | Seed={seed}")

        return train_df, test_df
