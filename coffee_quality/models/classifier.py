"""
Module `models.classifier` - huấn luyện random forest và dự đoán bằng majority vote.

Tóm tắt:
- `ClassifierTrainer.fit` nhận bảng train, cột output (categorical) và danh sách cột
  đầu vào; trả về `FittedClassifier` bất biến.
- Seed được truyền tường minh vào mỗi lần fit (không dùng global random state), nên
  cùng dữ liệu + cùng seed luôn cho cùng dự đoán, kể cả khi fit song song (n_jobs).
- `FittedClassifier` giữ: ensemble, label sets đã đóng băng, đường cong OOB error theo
  số cây k = 1..tree_count, và bảng feature importance.

Important keywords: Args, Returns, Raises, Methods
"""

import math
from datetime import datetime
from typing import Dict, List, Optional, Any

import numpy as np
import pandas as pd
from sklearn.ensemble import RandomForestClassifier

from ..data.transformer import DataTransformer, encode_target
from ..exceptions import ConfigError, require_columns
from .evaluator import ModelEvaluator


def default_split_variable_count(n_inputs: int) -> int:
    """Số biến thử ở mỗi split mặc định cho classification: round(sqrt(p)), tối thiểu 1."""
    return max(1, int(math.floor(math.sqrt(n_inputs) + 0.5)))


def oob_error_curve(forest: RandomForestClassifier, X: np.ndarray, y: np.ndarray) -> pd.Series:
    """
    Tính OOB error cho từng số cây k = 1..n_trees.

    Với mỗi k: mỗi dòng nhận vote từ các cây 1..k mà bootstrap sample của cây đó
    không chứa dòng này; nhãn OOB = majority vote; error = tỷ lệ sai trên các dòng
    có ít nhất một vote.

    Args:
        forest: RandomForestClassifier đã fit (bootstrap=True).
        X: Ma trận đặc trưng train (đúng ma trận đã dùng để fit).
        y: Mã class train (theo thứ tự forest.classes_).

    Returns:
        pd.Series: index = số cây k, value = OOB error rate (NaN nếu chưa dòng nào có vote).
    """
    n_samples = X.shape[0]
    n_classes = len(forest.classes_)
    y_idx = np.searchsorted(forest.classes_, y)
    votes = np.zeros((n_samples, n_classes), dtype=np.int64)
    rows = np.arange(n_samples)
    errors = np.empty(len(forest.estimators_), dtype=float)

    for k, (tree, in_bag) in enumerate(zip(forest.estimators_, forest.estimators_samples_)):
        oob_mask = np.ones(n_samples, dtype=bool)
        oob_mask[in_bag] = False
        if oob_mask.any():
            tree_pred = tree.predict(X[oob_mask]).astype(np.int64)
            np.add.at(votes, (rows[oob_mask], tree_pred), 1)

        has_vote = votes.sum(axis=1) > 0
        if has_vote.any():
            oob_pred = votes[has_vote].argmax(axis=1)
            errors[k] = float(np.mean(oob_pred != y_idx[has_vote]))
        else:
            errors[k] = np.nan

    return pd.Series(errors, index=pd.RangeIndex(1, len(errors) + 1, name='n_trees'), name='oob_error')


class FittedClassifier:
    """
    Random forest đã fit. Không thay đổi sau khi tạo.

    Attributes:
        output_col (str): Cột output.
        input_cols (List[str]): Các cột đầu vào.
        labels (tuple): Label set đã đóng băng của output.
        tree_count (int), split_variable_count (int), random_state (int)
        oob_error_curve (pd.Series): OOB error theo số cây.
    """

    def __init__(self, forest: RandomForestClassifier, transformer: DataTransformer,
                 output_col: str, labels: tuple, oob_curve: pd.Series, random_state: Optional[int]):
        self._forest = forest
        self._transformer = transformer
        self.output_col = output_col
        self.input_cols = list(transformer.input_cols)
        self.labels = tuple(labels)
        self.tree_count = forest.n_estimators
        self.split_variable_count = forest.max_features
        self.random_state = random_state
        self.oob_error_curve = oob_curve

    @property
    def oob_error(self) -> float:
        """OOB error với toàn bộ ensemble (điểm cuối của đường cong)."""
        return float(self.oob_error_curve.iloc[-1])

    @property
    def categories(self) -> Dict[str, tuple]:
        return dict(self._transformer.categories)

    def predict(self, df: pd.DataFrame) -> pd.Series:
        """
        Dự đoán nhãn bằng majority vote trên tất cả các cây.

        Hòa phiếu được phân xử về nhãn đứng trước trong label set.

        Returns:
            pd.Series: Categorical series (categories = label set của output), cùng index với df.

        Raises:
            SchemaError: Thiếu cột đầu vào.
            ColumnTypeError: Có nhãn categorical ngoài label set đã học.
        """
        X = self._transformer.transform(df).to_numpy(dtype=np.float32)
        n_classes = len(self._forest.classes_)
        votes = np.zeros((X.shape[0], n_classes), dtype=np.int64)
        rows = np.arange(X.shape[0])
        for tree in self._forest.estimators_:
            np.add.at(votes, (rows, tree.predict(X).astype(np.int64)), 1)

        # forest.classes_ là mã của output (tăng dần) nên argmax đầu tiên = nhãn đứng trước
        codes = self._forest.classes_[votes.argmax(axis=1)] if len(rows) else np.array([], dtype=int)
        values = [self.labels[int(c)] for c in codes]
        return pd.Series(
            pd.Categorical(values, categories=list(self.labels)),
            index=df.index, name=self.output_col
        )

    def feature_importance(self, top_n: Optional[int] = None) -> pd.DataFrame:
        """
        Bảng độ quan trọng đặc trưng (mean decrease in impurity), sắp xếp giảm dần.

        Returns:
            pd.DataFrame: 2 cột ['feature', 'importance'].
        """
        importance_df = pd.DataFrame({
            'feature': self._transformer.feature_names,
            'importance': self._forest.feature_importances_
        }).sort_values('importance', ascending=False, kind='mergesort').reset_index(drop=True)
        return importance_df.head(top_n) if top_n else importance_df


class ClassifierTrainer:
    """
    Class: ClassifierTrainer
    Quản lý fit random forest và đánh giá trên train/test.

    Methods:
        fit: Huấn luyện FittedClassifier từ bảng train.
        evaluate: Dự đoán trên một bảng và tính accuracy + confusion matrix.
    """

    def __init__(self, config: Dict[str, Any], logger=None):
        """Khởi tạo ClassifierTrainer.

        Args:
            config (Dict): cấu hình, đọc section 'classification'
                (tree_count, split_variable_count, random_state, n_jobs)
            logger: logger (optional)
        """
        self.config = config
        self.logger = logger
        self.cfg = config.get('classification', {}) or {}
        self.evaluator = ModelEvaluator(logger)

    def fit(self, train_df: pd.DataFrame, output_col: str, input_cols: List[str],
            tree_count: Optional[int] = None, split_variable_count: Optional[int] = None,
            random_state: Optional[int] = None) -> FittedClassifier:
        """
        Huấn luyện random forest.

        Args:
            train_df (pd.DataFrame): Bảng train.
            output_col (str): Cột output (phải là categorical).
            input_cols (List[str]): Các cột đầu vào (numeric hoặc categorical).
            tree_count (int, optional): Số cây. Default: config hoặc 500.
            split_variable_count (int, optional): Số cột thử tại mỗi split.
                Default: round(sqrt(len(input_cols))).
            random_state (int, optional): Seed tường minh. Default: config hoặc 123.

        Returns:
            FittedClassifier

        Raises:
            SchemaError: Thiếu cột output/đầu vào.
            ColumnTypeError: Output không phải categorical.
            ConfigError: Training data có ít hơn 2 nhãn, hoặc tham số không hợp lệ.
        """
        input_cols = list(input_cols)
        if not input_cols:
            raise ConfigError("At least one input column is required")
        if output_col in input_cols:
            raise ConfigError(f"Output column '{output_col}' cannot also be an input column")
        require_columns(train_df, [output_col] + input_cols, context='training data')

        y, labels = encode_target(train_df[output_col])
        present = np.unique(y[y >= 0])
        if len(present) < 2:
            raise ConfigError(
                f"Classification needs at least 2 labels in '{output_col}', found {len(present)}"
            )
        if (y < 0).any():
            raise ConfigError(f"Missing values in output column '{output_col}'")

        tree_count = int(tree_count or self.cfg.get('tree_count', 500))
        if split_variable_count is None:
            split_variable_count = self.cfg.get('split_variable_count') or default_split_variable_count(len(input_cols))
        split_variable_count = int(split_variable_count)
        if random_state is None:
            random_state = self.cfg.get('random_state', 123)
        if tree_count < 1:
            raise ConfigError(f"tree_count must be >= 1, got {tree_count}")
        if not 1 <= split_variable_count <= len(input_cols):
            raise ConfigError(
                f"split_variable_count must be in [1, {len(input_cols)}], got {split_variable_count}"
            )

        transformer = DataTransformer(input_cols, encoding='ordinal', logger=self.logger)
        X = transformer.fit_transform(train_df).to_numpy(dtype=np.float32)

        if self.logger:
            self.logger.info(
                f"[TRAINING] RANDOM FOREST | {output_col} ~ {len(input_cols)} inputs | "
                f"Trees: {tree_count} | mtry: {split_variable_count} | Seed: {random_state}"
            )

        forest = RandomForestClassifier(
            n_estimators=tree_count,
            max_features=split_variable_count,
            bootstrap=True,
            random_state=random_state,
            n_jobs=self.cfg.get('n_jobs', None),
        )

        start_time = datetime.now()
        forest.fit(X, y)
        curve = oob_error_curve(forest, X, y)

        if self.logger:
            self.logger.info(
                f"  Time: {(datetime.now() - start_time).total_seconds():.2f}s | "
                f"OOB error: {curve.iloc[-1]:.4f}"
            )

        return FittedClassifier(forest, transformer, output_col, labels, curve, random_state)

    def evaluate(self, fitted: FittedClassifier, df: pd.DataFrame, model_name: str = 'random_forest') -> Dict:
        """
        Dự đoán trên `df` và đánh giá so với cột output.

        Returns:
            Dict: Kết quả từ ModelEvaluator.evaluate_classification (có thêm 'oob_error').
        """
        predicted = fitted.predict(df)
        return self.evaluator.evaluate_classification(
            predicted, df[fitted.output_col], model_name=model_name,
            labels=fitted.labels, oob_error=fitted.oob_error
        )
