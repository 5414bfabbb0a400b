"""
Module `models.evaluator` - đánh giá hiệu năng mô hình phân loại và hồi quy.

Gồm các hàm thuần (pure functions) tính metrics theo công thức chuẩn và lớp
`ModelEvaluator` tổng hợp kết quả thành dictionary + ghi log.

Important keywords: Args, Returns, Raises, Methods
"""

import numpy as np
import pandas as pd
from typing import Dict, Any, Optional, Sequence, Tuple
from scipy import stats
from sklearn.metrics import classification_report, mean_absolute_error, mean_squared_error
from sklearn.metrics import confusion_matrix as sk_confusion_matrix

from ..exceptions import ConfigError


def _check_lengths(predicted, actual) -> Tuple[np.ndarray, np.ndarray]:
    predicted = np.asarray(predicted)
    actual = np.asarray(actual)
    if predicted.shape[0] != actual.shape[0]:
        raise ConfigError(
            f"Predicted and actual vectors differ in length: {predicted.shape[0]} != {actual.shape[0]}"
        )
    return predicted, actual


def residuals(predicted, actual) -> np.ndarray:
    """
    Phần dư = actual - predicted (theo từng phần tử).

    Raises:
        ConfigError: Nếu hai vector khác độ dài.
    """
    predicted, actual = _check_lengths(predicted, actual)
    return actual.astype(float) - predicted.astype(float)


def classification_accuracy(predicted, actual) -> float:
    """Tỷ lệ dòng có predicted == actual."""
    predicted, actual = _check_lengths(predicted, actual)
    if actual.shape[0] == 0:
        raise ConfigError("Accuracy is undefined for empty vectors")
    return float(np.mean(predicted.astype(str) == actual.astype(str)))


def confusion_matrix(predicted, actual, labels: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Ma trận nhầm lẫn |labels| x |labels|: hàng = actual, cột = predicted.

    Args:
        predicted: Nhãn dự đoán.
        actual: Nhãn thực tế.
        labels: Thứ tự nhãn. Mặc định: categories nếu actual là categorical,
            ngược lại là hợp các nhãn xuất hiện (sorted).

    Returns:
        pd.DataFrame: Bảng đếm, index = actual label, columns = predicted label.
    """
    if labels is None:
        if isinstance(getattr(actual, 'dtype', None), pd.CategoricalDtype):
            labels = [str(c) for c in actual.cat.categories]
        else:
            labels = sorted(set(np.asarray(actual).astype(str)) | set(np.asarray(predicted).astype(str)))
    predicted, actual = _check_lengths(predicted, actual)
    labels = [str(label) for label in labels]

    matrix = sk_confusion_matrix(actual.astype(str), predicted.astype(str), labels=labels)
    return pd.DataFrame(
        matrix,
        index=pd.Index(labels, name='actual'),
        columns=pd.Index(labels, name='predicted'),
    )


def r_squared(predicted, actual) -> float:
    """R² = 1 - SS_res / SS_tot."""
    res = residuals(predicted, actual)
    actual = np.asarray(actual, dtype=float)
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    if ss_tot == 0:
        raise ConfigError("R-squared is undefined when actual values are constant")
    return 1.0 - float(np.sum(res ** 2)) / ss_tot


def gaussian_log_likelihood(resid) -> float:
    """Log-likelihood của mô hình tuyến tính với sai số Gaussian (ước lượng ML của sigma)."""
    resid = np.asarray(resid, dtype=float)
    n = resid.shape[0]
    rss = float(np.sum(resid ** 2))
    return -n / 2.0 * (np.log(2 * np.pi) + np.log(rss / n) + 1.0)


def aic(log_likelihood: float, n_params: int) -> float:
    """AIC = 2k - 2 ln L."""
    return 2.0 * n_params - 2.0 * log_likelihood


def bic(log_likelihood: float, n_params: int, n_obs: int) -> float:
    """BIC = k ln n - 2 ln L."""
    return n_params * np.log(n_obs) - 2.0 * log_likelihood


def overall_f_test(r2: float, n_obs: int, n_predictors: int) -> Tuple[float, float]:
    """
    Kiểm định F tổng thể của hồi quy (H0: mọi hệ số trừ intercept = 0).

    Returns:
        Tuple[float, float]: (F statistic, p-value)
    """
    df_resid = n_obs - n_predictors - 1
    if n_predictors < 1 or df_resid < 1:
        raise ConfigError(f"F-test needs n_predictors >= 1 and residual df >= 1 (n={n_obs}, k={n_predictors})")
    if r2 >= 1.0:
        # fit hoàn hảo: SS_res = 0
        return float("inf"), 0.0
    f_value = (r2 / n_predictors) / ((1.0 - r2) / df_resid)
    return float(f_value), float(stats.f.sf(f_value, n_predictors, df_resid))


class ModelEvaluator:
    """
    Class: ModelEvaluator
    Chịu trách nhiệm tính toán và log các chỉ số đánh giá cho classifier và regressor.

    Methods:
        evaluate_classification(predicted, actual, ...): accuracy + confusion matrix.
        evaluate_regression(fitted, df, output_col, ...): R², RMSE, MAE, residuals trên tập đánh giá.
    """

    def __init__(self, logger=None):
        """
        Args:
            logger (logging.Logger, optional): Logger để ghi lại kết quả đánh giá.
        """
        self.logger = logger

    def evaluate_classification(self, predicted, actual, model_name: str = 'classifier',
                                labels: Optional[Sequence[str]] = None,
                                oob_error: Optional[float] = None) -> Dict[str, Any]:
        """
        Method: evaluate_classification

        Args:
            predicted: Nhãn dự đoán (Series hoặc array).
            actual: Nhãn thực tế.
            model_name (str, optional): Tên để hiển thị trong log.
            labels (Sequence[str], optional): Thứ tự nhãn cho confusion matrix.
            oob_error (float, optional): OOB error của forest (nếu có) để đưa vào metrics.

        Returns:
            Dict[str, Any]:
                - 'metrics': accuracy, error_rate (+ oob_error)
                - 'confusion_matrix': pd.DataFrame (hàng = actual, cột = predicted)
                - 'classification_report': text report
                - 'y_pred', 'y_true': các vector gốc
        """
        cm = confusion_matrix(predicted, actual, labels=labels)
        counts = cm.to_numpy()
        accuracy = float(np.trace(counts) / counts.sum()) if counts.sum() else float('nan')

        metrics = {
            'accuracy': accuracy,
            'error_rate': 1.0 - accuracy,
        }
        if oob_error is not None:
            metrics['oob_error'] = float(oob_error)

        result = {
            'metrics': metrics,
            'confusion_matrix': cm,
            'labels': list(cm.index),
            'classification_report': classification_report(
                np.asarray(actual).astype(str), np.asarray(predicted).astype(str),
                labels=list(cm.index), zero_division=0
            ),
            'y_pred': np.asarray(predicted),
            'y_true': np.asarray(actual),
        }

        if self.logger:
            self.logger.info(f"[EVALUATION] {model_name.upper()}")
            log_msg = " | ".join([f"{k.upper()}: {v:.4f}" for k, v in metrics.items()])
            self.logger.info(f"  {log_msg}")

        return result

    def evaluate_regression(self, fitted, df: pd.DataFrame, model_name: str = 'regressor') -> Dict[str, Any]:
        """
        Method: evaluate_regression
        Dự đoán trên `df` và tính metrics so với cột output của mô hình.

        Args:
            fitted (FittedRegressor): Mô hình hồi quy đã fit.
            df (pd.DataFrame): Tập dữ liệu đánh giá (thường là test).
            model_name (str, optional): Tên để log.

        Returns:
            Dict[str, Any]:
                - 'metrics': r_squared, rmse, mae trên df + aic, bic, adjusted_r_squared,
                  f_statistic của mô hình trên tập train
                - 'residuals', 'y_pred', 'y_true'
        """
        y_true = df[fitted.output_col].to_numpy(dtype=float)
        y_pred = fitted.predict(df).to_numpy()
        resid = residuals(y_pred, y_true)
        summary = fitted.summary()

        metrics = {
            'r_squared': r_squared(y_pred, y_true),
            'rmse': float(np.sqrt(mean_squared_error(y_true, y_pred))),
            'mae': float(mean_absolute_error(y_true, y_pred)),
            'train_r_squared': summary['r_squared'],
            'adjusted_r_squared': summary['adjusted_r_squared'],
            'f_statistic': summary['f_statistic'],
            'aic': summary['aic'],
            'bic': summary['bic'],
        }

        if self.logger:
            self.logger.info(f"[EVALUATION] {model_name.upper()}")
            log_msg = " | ".join([f"{k.upper()}: {v:.4f}" for k, v in metrics.items()])
            self.logger.info(f"  {log_msg}")

        return {
            'metrics': metrics,
            'residuals': resid,
            'y_pred': y_pred,
            'y_true': y_true,
        }
