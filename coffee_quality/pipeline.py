"""
Module `pipeline` - điều phối các bước: Load & Clean -> Split -> Classification -> Regression.

Important keywords: Args, Returns, Methods, Notes
"""

import os
import logging
import pandas as pd
from typing import Dict, Any, List, Optional, Tuple

from .data import DataPreprocessor, COFFEE_RATINGS_URL
from .data.preprocessor import SCORE_COLUMNS
from .models import ClassifierTrainer, ModelOptimizer, RegressionTrainer, ModelEvaluator
from .utils import IOHandler, get_timestamp, ensure_dir, extract_base_filename, to_builtin

MODES = ('full', 'classify', 'regress')

DEFAULT_CLASSIFICATION_OUTPUT = 'processing_method'
DEFAULT_REGRESSION_OUTPUT = 'total_cup_points'
DEFAULT_REGRESSION_INPUTS = SCORE_COLUMNS + ['moisture', 'altitude_mean_meters']


class Pipeline:
    """
    Lớp điều phối pipeline.

    Mục đích:
    - Thiết lập các component (preprocessor, classifier, optimizer, regressor, evaluator)
    - Điều phối các stage và gom kết quả thành một evaluation report (dict)

    Methods:
        run_preprocessing(), run_classification(), run_regression(), run()
    """

    def __init__(self, config: Dict[str, Any], logger: logging.Logger):
        """Khởi tạo Pipeline với config và logger.

        Args:
            config (Dict): cấu hình dự án
            logger (logging.Logger): logger instance
        """
        self.config = config
        self.logger = logger
        self.artifacts_cfg = config.get('artifacts', {}) or {}

        self.preprocessor = DataPreprocessor(config, logger)
        self.classifier = ClassifierTrainer(config, logger)
        self.optimizer = ModelOptimizer(config, logger)
        self.regressor = RegressionTrainer(config, logger)
        self.evaluator = ModelEvaluator(logger)

        self.logger.info("Pipeline Initialized")

    # =========================================================================
    # STAGE 1-2: LOAD, CLEAN, SPLIT
    # =========================================================================
    def run_preprocessing(self, source: Optional[str] = None) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
        """
        Load -> Clean -> Split.

        Args:
            source (str, optional): path/URL dữ liệu; None -> `data.source`.

        Returns:
            Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]: (clean_df, train_df, test_df)
        """
        self.logger.info("\n" + "=" * 70)
        self.logger.info("STAGE: PREPROCESSING")
        self.logger.info("=" * 70)

        df = self.preprocessor.load_data(source)
        df_clean = self.preprocessor.clean_data(df)
        train_df, test_df = self.preprocessor.split_data(df_clean)
        return df_clean, train_df, test_df

    # =========================================================================
    # STAGE 3: CLASSIFICATION (RANDOM FOREST)
    # =========================================================================
    def _classification_formula(self, df: pd.DataFrame) -> Tuple[str, List[str]]:
        cfg = self.config.get('classification', {}) or {}
        output_col = cfg.get('output_col', DEFAULT_CLASSIFICATION_OUTPUT)
        input_cols = cfg.get('input_cols') or [c for c in df.columns if c != output_col]
        return output_col, list(input_cols)

    def run_classification(self, train_df: pd.DataFrame, test_df: pd.DataFrame,
                           optimize: Optional[bool] = None) -> Dict[str, Any]:
        """
        Fit random forest, đánh giá train/test; nếu optimize thì tune mtry và refit.

        Args:
            train_df, test_df: kết quả split
            optimize (bool, optional): Có chạy tuning không. Default: `tuning.enabled`.

        Returns:
            Dict: 'model', 'train', 'test', và (nếu optimize) 'tuning', 'tuned_model', 'tuned_test'
        """
        self.logger.info("\n" + "=" * 70)
        self.logger.info("STAGE: CLASSIFICATION")
        self.logger.info("=" * 70)

        if optimize is None:
            optimize = (self.config.get('tuning', {}) or {}).get('enabled', False)

        output_col, input_cols = self._classification_formula(train_df)
        fitted = self.classifier.fit(train_df, output_col, input_cols)

        result = {
            'model': fitted,
            'train': self.classifier.evaluate(fitted, train_df, model_name='random_forest (train)'),
            'test': self.classifier.evaluate(fitted, test_df, model_name='random_forest (test)'),
        }

        if optimize:
            best, history = self.optimizer.tune(
                self.classifier, train_df, output_col, input_cols,
                random_state=fitted.random_state
            )
            tuned = self.classifier.fit(train_df, output_col, input_cols,
                                        split_variable_count=best, random_state=fitted.random_state)
            result['tuning'] = {'best_split_variable_count': best, 'history': history}
            result['tuned_model'] = tuned
            result['tuned_test'] = self.classifier.evaluate(tuned, test_df, model_name='random_forest tuned (test)')

        return result

    # =========================================================================
    # STAGE 4: REGRESSION (OLS + BACKWARD ELIMINATION)
    # =========================================================================
    def run_regression(self, train_df: pd.DataFrame, test_df: pd.DataFrame) -> Dict[str, Any]:
        """
        Fit OLS đầy đủ, backward elimination theo AIC, đánh giá mô hình rút gọn trên test.

        Returns:
            Dict: 'full_model', 'full_summary', 'model', 'summary', 'test'
        """
        self.logger.info("\n" + "=" * 70)
        self.logger.info("STAGE: REGRESSION")
        self.logger.info("=" * 70)

        cfg = self.config.get('regression', {}) or {}
        output_col = cfg.get('output_col', DEFAULT_REGRESSION_OUTPUT)
        input_cols = cfg.get('input_cols') or DEFAULT_REGRESSION_INPUTS

        full = self.regressor.fit(train_df, output_col, input_cols)
        model = full
        if cfg.get('backward_elimination', True):
            model = self.regressor.backward_eliminate(full, train_df, output_col)

        return {
            'full_model': full,
            'full_summary': self.regressor.summary(full),
            'model': model,
            'summary': self.regressor.summary(model),
            'test': self.evaluator.evaluate_regression(model, test_df, model_name='ols (test)'),
        }

    # =========================================================================
    # REPORT & ARTIFACTS
    # =========================================================================
    @staticmethod
    def build_report(clean_df: pd.DataFrame, train_df: pd.DataFrame, test_df: pd.DataFrame,
                     classification: Optional[Dict] = None, regression: Optional[Dict] = None) -> Dict[str, Any]:
        """
        Gom kết quả thành mapping metric -> giá trị (JSON-serializable).

        Returns:
            Dict: 'data', 'classification', 'regression'
        """
        report: Dict[str, Any] = {
            'data': {'n_rows': len(clean_df), 'n_train': len(train_df), 'n_test': len(test_df)}
        }

        if classification:
            fitted = classification['model']
            section = {
                'output_col': fitted.output_col,
                'input_cols': fitted.input_cols,
                'tree_count': fitted.tree_count,
                'split_variable_count': fitted.split_variable_count,
                'oob_error': fitted.oob_error,
                'train_accuracy': classification['train']['metrics']['accuracy'],
                'test_accuracy': classification['test']['metrics']['accuracy'],
                'confusion_matrix': classification['test']['confusion_matrix'],
                'feature_importance': fitted.feature_importance(top_n=10).set_index('feature')['importance'].to_dict(),
            }
            if 'tuning' in classification:
                tuned = classification['tuned_model']
                section['tuning'] = {
                    'best_split_variable_count': classification['tuning']['best_split_variable_count'],
                    'history': classification['tuning']['history'].to_dict(orient='records'),
                    'oob_error': tuned.oob_error,
                    'test_accuracy': classification['tuned_test']['metrics']['accuracy'],
                    'confusion_matrix': classification['tuned_test']['confusion_matrix'],
                }
            report['classification'] = section

        if regression:
            summary = regression['summary']
            full_summary = regression['full_summary']
            report['regression'] = {
                'output_col': regression['model'].output_col,
                'full': {
                    'predictors': regression['full_model'].input_cols,
                    **{k: full_summary[k] for k in ('r_squared', 'adjusted_r_squared', 'f_statistic',
                                                    'overall_p_value', 'aic', 'bic')},
                },
                'reduced': {
                    'predictors': regression['model'].input_cols,
                    'coefficients': summary['coefficients'].to_dict(),
                    'p_values': summary['p_values'].to_dict(),
                    **{k: summary[k] for k in ('r_squared', 'adjusted_r_squared', 'f_statistic',
                                               'overall_p_value', 'aic', 'bic')},
                },
                'elimination_steps': [s._asdict() for s in regression['model'].elimination_steps],
                'test': {k: regression['test']['metrics'][k] for k in ('r_squared', 'rmse', 'mae')},
            }

        return to_builtin(report)

    def _save_artifacts(self, report: Dict[str, Any], source: str, clean_df: pd.DataFrame,
                        classification: Optional[Dict], regression: Optional[Dict]) -> Optional[str]:
        """Lưu report JSON, snapshot config, (tùy chọn) dữ liệu đã clean và các mô hình đã fit."""
        if not self.artifacts_cfg.get('save', False):
            return None

        timestamp = get_timestamp()
        base_name = extract_base_filename(source)
        results_dir = self.artifacts_cfg.get('results_dir', 'artifacts/results')
        ensure_dir(results_dir)
        report_path = os.path.join(results_dir, f"{base_name}_evaluation_{timestamp}.json")
        IOHandler.save_json(report, report_path)
        IOHandler.save_yaml(self.config, os.path.join(results_dir, f"{base_name}_config_{timestamp}.yaml"))
        self.logger.info(f"Saved: {report_path}")

        if self.artifacts_cfg.get('save_clean_data', False):
            clean_path = os.path.join(results_dir, f"{base_name}_clean_{timestamp}.csv")
            IOHandler.save_data(clean_df, clean_path)
            self.logger.info(f"Saved: {clean_path}")

        if self.artifacts_cfg.get('save_models', False):
            models_dir = self.artifacts_cfg.get('models_dir', 'artifacts/models')
            models = {}
            if classification:
                models['random_forest'] = classification.get('tuned_model', classification['model'])
            if regression:
                models['ols'] = regression['model']
            for name, model in models.items():
                path = os.path.join(models_dir, f"{base_name}_{name}_{timestamp}.joblib")
                IOHandler.save_model(model, path)
                self.logger.info(f"Model Saved | {path}")

        return report_path

    # =========================================================================
    # ENTRY
    # =========================================================================
    def run(self, mode: str = 'full', source: Optional[str] = None,
            optimize: Optional[bool] = None) -> Dict[str, Any]:
        """
        Chạy pipeline theo mode.

        Args:
            mode (str): 'full' | 'classify' | 'regress'
            source (str, optional): path/URL dữ liệu
            optimize (bool, optional): Bật tuning random forest

        Returns:
            Dict: evaluation report (JSON-serializable)

        Raises:
            ValueError: mode không hợp lệ
        """
        if mode not in MODES:
            raise ValueError(f"Unknown mode '{mode}'. Supported: {MODES}")

        source = source or (self.config.get('data', {}) or {}).get('source') or COFFEE_RATINGS_URL
        clean_df, train_df, test_df = self.run_preprocessing(source)

        classification = regression = None
        if mode in ('full', 'classify'):
            classification = self.run_classification(train_df, test_df, optimize=optimize)
        if mode in ('full', 'regress'):
            regression = self.run_regression(train_df, test_df)

        report = self.build_report(clean_df, train_df, test_df, classification, regression)
        self._save_artifacts(report, source, clean_df, classification, regression)

        self.logger.info("=" * 60)
        self.logger.info("PIPELINE COMPLETED")
        return report
