"""
Module `models.regressor` - hồi quy tuyến tính bội (OLS) và backward elimination theo AIC.

Tóm tắt:
- `RegressionTrainer.fit`: OLS (statsmodels) trên bảng train; cột categorical được
  mở rộng thành biến indicator, bỏ nhãn đầu tiên làm reference.
- `RegressionTrainer.backward_eliminate`: mỗi bước bỏ đúng một predictor (một nhóm
  indicator của cột categorical tính là một predictor) làm AIC giảm nhiều nhất, refit,
  dừng khi không còn bước nào làm AIC giảm hoặc chỉ còn 1 predictor.
- Mỗi bước được ghi lại trong `elimination_steps` để kiểm tra lại.

Important keywords: Args, Returns, Raises, Methods
"""

from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple, Any

import numpy as np
import pandas as pd
import statsmodels.api as sm

from ..data.transformer import DataTransformer, is_numeric
from ..exceptions import ColumnTypeError, ConfigError, SingularMatrixError, require_columns
from .evaluator import aic, bic, overall_f_test


class EliminationStep(NamedTuple):
    """Một bước backward elimination: predictor bị bỏ và AIC trước/sau."""
    removed: str
    aic_before: float
    aic_after: float


class FittedRegressor:
    """
    Mô hình OLS đã fit.

    Attributes:
        output_col (str): Cột output.
        input_cols (List[str]): Predictors (tên cột gốc, trước khi mở rộng indicator).
        coefficients (pd.Series): Intercept ('const') + hệ số từng cột trong ma trận thiết kế.
        residuals (pd.Series), fitted_values (pd.Series): Chẩn đoán trên tập train.
        aic (float), bic (float)
        elimination_steps (Tuple[EliminationStep, ...]): Lịch sử backward elimination.
    """

    def __init__(self, results, transformer: DataTransformer, output_col: str,
                 elimination_steps: Sequence[EliminationStep] = ()):
        self._results = results
        self._transformer = transformer
        self.output_col = output_col
        self.input_cols = list(transformer.input_cols)
        self.elimination_steps = tuple(elimination_steps)

        self.coefficients = results.params.copy()
        self.residuals = results.resid.copy()
        self.fitted_values = results.fittedvalues.copy()
        self.n_obs = int(results.nobs)

        n_params = len(self.coefficients)
        self.aic = float(aic(results.llf, n_params))
        self.bic = float(bic(results.llf, n_params, self.n_obs))

    @property
    def categories(self) -> Dict[str, tuple]:
        return dict(self._transformer.categories)

    @property
    def transformer(self) -> DataTransformer:
        return self._transformer

    def design_matrix(self, df: pd.DataFrame) -> pd.DataFrame:
        """Ma trận thiết kế (có cột 'const') theo đúng thứ tự hệ số."""
        X = self._transformer.transform(df)
        return sm.add_constant(X, has_constant='add')[self.coefficients.index]

    def predict(self, df: pd.DataFrame) -> pd.Series:
        """
        Tổ hợp tuyến tính của hệ số và các cột (đã mở rộng) của từng dòng.

        Raises:
            SchemaError / ColumnTypeError: như DataTransformer.transform
        """
        design = self.design_matrix(df)
        values = design.to_numpy(dtype=float) @ self.coefficients.to_numpy(dtype=float)
        return pd.Series(values, index=df.index, name=f"{self.output_col}_pred")

    def summary(self) -> Dict[str, Any]:
        """
        Tóm tắt OLS theo công thức đóng.

        Returns:
            Dict: coefficients, standard_errors, t_statistics, p_values (pd.Series theo tên hệ số),
                r_squared, adjusted_r_squared, f_statistic, overall_p_value, aic, bic,
                n_obs, df_resid
        """
        res = self._results
        f_statistic, overall_p_value = overall_f_test(float(res.rsquared), self.n_obs, int(res.df_model))
        return {
            'coefficients': self.coefficients,
            'standard_errors': res.bse.copy(),
            't_statistics': res.tvalues.copy(),
            'p_values': res.pvalues.copy(),
            'r_squared': float(res.rsquared),
            'adjusted_r_squared': float(res.rsquared_adj),
            'f_statistic': f_statistic,
            'overall_p_value': overall_p_value,
            'aic': self.aic,
            'bic': self.bic,
            'n_obs': self.n_obs,
            'df_resid': float(res.df_resid),
        }


class RegressionTrainer:
    """
    Class: RegressionTrainer
    Fit OLS, tóm tắt, backward elimination và dự đoán.

    Methods:
        fit, summary, backward_eliminate, predict
    """

    def __init__(self, config: Dict[str, Any], logger=None):
        """Khởi tạo RegressionTrainer.

        Args:
            config (Dict): cấu hình (section 'regression')
            logger: logger (optional)
        """
        self.config = config
        self.logger = logger
        self.cfg = config.get('regression', {}) or {}

    def fit(self, train_df: pd.DataFrame, output_col: str, input_cols: List[str]) -> FittedRegressor:
        """
        Fit OLS: hệ số cực tiểu tổng bình phương phần dư trên tập train.

        Args:
            train_df (pd.DataFrame): Bảng train.
            output_col (str): Cột output (numeric).
            input_cols (List[str]): Predictors (numeric hoặc categorical).

        Returns:
            FittedRegressor

        Raises:
            SchemaError: Thiếu cột.
            ColumnTypeError: Output không phải numeric, hoặc predictor không phải numeric/categorical.
            SingularMatrixError: Predictors cộng tuyến hoàn toàn.
        """
        input_cols = list(dict.fromkeys(input_cols))
        if not input_cols:
            raise ConfigError("At least one input column is required")
        if output_col in input_cols:
            raise ConfigError(f"Output column '{output_col}' cannot also be an input column")
        require_columns(train_df, [output_col] + input_cols, context='training data')

        transformer = DataTransformer(input_cols, encoding='onehot', logger=self.logger)
        transformer.fit(train_df)
        fitted = self._fit_with_transformer(train_df, output_col, transformer)

        if self.logger:
            self.logger.info(
                f"[TRAINING] OLS | {output_col} ~ {' + '.join(input_cols)}"
            )
            self.logger.info(
                f"  R2: {fitted.summary()['r_squared']:.4f} | AIC: {fitted.aic:.2f} | BIC: {fitted.bic:.2f}"
            )
        return fitted

    def _fit_with_transformer(self, train_df: pd.DataFrame, output_col: str,
                              transformer: DataTransformer,
                              elimination_steps: Sequence[EliminationStep] = ()) -> FittedRegressor:
        y_series = train_df[output_col]
        if not is_numeric(y_series):
            raise ColumnTypeError(f"Output column '{output_col}' must be numeric, got {y_series.dtype}")
        if y_series.isnull().any():
            raise ConfigError(f"Missing values in output column '{output_col}'")

        X = transformer.transform(train_df)
        design = sm.add_constant(X, has_constant='add')
        n_obs, n_params = design.shape

        rank = np.linalg.matrix_rank(design.to_numpy(dtype=float))
        if rank < n_params:
            raise SingularMatrixError(
                f"Design matrix is rank deficient (rank {rank} < {n_params} columns); "
                f"predictors are perfectly collinear: {transformer.input_cols}"
            )
        if n_obs <= n_params:
            raise ConfigError(f"Need more observations ({n_obs}) than coefficients ({n_params})")

        results = sm.OLS(y_series.astype(float), design).fit()
        return FittedRegressor(results, transformer, output_col, elimination_steps)

    def summary(self, fitted: FittedRegressor) -> Dict[str, Any]:
        """Xem `FittedRegressor.summary`."""
        return fitted.summary()

    def predict(self, fitted: FittedRegressor, df: pd.DataFrame) -> pd.Series:
        return fitted.predict(df)

    def backward_eliminate(self, fitted: FittedRegressor, train_df: pd.DataFrame,
                           output_col: Optional[str] = None) -> FittedRegressor:
        """
        Backward elimination theo AIC.

        Mỗi vòng: thử bỏ từng predictor còn lại, refit, chọn predictor cho AIC thấp nhất;
        chỉ bỏ nếu AIC đó thấp hơn hẳn AIC hiện tại. Dừng khi không còn bước cải thiện
        hoặc chỉ còn 1 predictor. Label sets của cột categorical giữ nguyên như lúc fit.

        Args:
            fitted (FittedRegressor): Mô hình đầy đủ.
            train_df (pd.DataFrame): Bảng train đã dùng để fit.
            output_col (str, optional): Phải trùng với fitted.output_col.

        Returns:
            FittedRegressor: Mô hình mới (đơn giản hơn hoặc tương đương), có elimination_steps.
        """
        output_col = output_col or fitted.output_col
        if output_col != fitted.output_col:
            raise ConfigError(f"Output column '{output_col}' differs from fitted model '{fitted.output_col}'")

        if self.logger:
            self.logger.info("=" * 60)
            self.logger.info(f"BACKWARD ELIMINATION | Start AIC={fitted.aic:.2f} | Predictors: {len(fitted.input_cols)}")

        current = fitted
        steps = list(fitted.elimination_steps)

        while len(current.input_cols) > 1:
            best_col, best_model = self._best_removal(current, train_df, output_col, steps)
            if best_model.aic >= current.aic:
                break

            step = EliminationStep(best_col, current.aic, best_model.aic)
            steps.append(step)
            if self.logger:
                self.logger.info(f"  Step: - {best_col:<25s} AIC {step.aic_before:.2f} -> {step.aic_after:.2f}")
            current = best_model

        if len(steps) != len(current.elimination_steps):
            current = FittedRegressor(current._results, current.transformer, output_col, steps)

        if self.logger:
            self.logger.info(
                f"Elimination done | Removed: {[s.removed for s in steps] or 'none'} | "
                f"Final AIC={current.aic:.2f}"
            )
        return current

    def _best_removal(self, current: FittedRegressor, train_df: pd.DataFrame, output_col: str,
                      steps: List[EliminationStep]) -> Tuple[str, FittedRegressor]:
        best: Optional[Tuple[str, FittedRegressor]] = None
        for col in current.input_cols:
            remaining = [c for c in current.input_cols if c != col]
            candidate = self._fit_with_transformer(
                train_df, output_col, current.transformer.subset(remaining), steps
            )
            if self.logger:
                self.logger.debug(f"    - {col:<25s} AIC={candidate.aic:.2f}")
            if best is None or candidate.aic < best[1].aic:
                best = (col, candidate)
        return best
