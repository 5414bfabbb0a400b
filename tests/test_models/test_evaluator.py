"""
tests/test_models/test_evaluator.py

Unit tests cho các hàm metric thuần và `ModelEvaluator`.
"""
import logging

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm

from coffee_quality.exceptions import ConfigError
from coffee_quality.models import evaluator as ev
from coffee_quality.models.evaluator import ModelEvaluator
from coffee_quality.models.regressor import RegressionTrainer


def test_residuals():
    np.testing.assert_allclose(ev.residuals([1.0, 2.0, 3.0], [1.5, 2.0, 2.0]), [0.5, 0.0, -1.0])
    with pytest.raises(ConfigError):
        ev.residuals([1.0, 2.0], [1.0])


def test_classification_accuracy():
    assert ev.classification_accuracy(['a', 'b', 'a', 'b'], ['a', 'b', 'b', 'b']) == pytest.approx(0.75)
    with pytest.raises(ConfigError):
        ev.classification_accuracy(['a'], ['a', 'b'])


def test_confusion_matrix_layout():
    actual = pd.Series(pd.Categorical(['x', 'y', 'y', 'z'], categories=['x', 'y', 'z']))
    predicted = ['x', 'y', 'x', 'x']

    cm = ev.confusion_matrix(predicted, actual)

    assert cm.index.name == 'actual'
    assert cm.columns.name == 'predicted'
    assert list(cm.index) == ['x', 'y', 'z']
    assert cm.loc['y', 'x'] == 1
    assert cm.loc['y', 'y'] == 1
    assert cm.loc['z', 'x'] == 1
    # nhãn không xuất hiện trong predicted vẫn có cột
    assert cm['z'].sum() == 0
    assert cm.to_numpy().sum() == 4


def test_r_squared():
    actual = np.array([1.0, 2.0, 3.0, 4.0])
    assert ev.r_squared(actual, actual) == pytest.approx(1.0)
    assert ev.r_squared(np.full(4, actual.mean()), actual) == pytest.approx(0.0)
    with pytest.raises(ConfigError):
        ev.r_squared([1.0, 2.0], [3.0, 3.0])


def test_information_criteria_match_statsmodels(regression_df):
    X = sm.add_constant(regression_df[['x1', 'x2', 'noise1']])
    results = sm.OLS(regression_df['y'], X).fit()
    k = len(results.params)

    ll = ev.gaussian_log_likelihood(results.resid)
    assert ll == pytest.approx(results.llf)
    assert ev.aic(ll, k) == pytest.approx(results.aic)
    assert ev.bic(ll, k, int(results.nobs)) == pytest.approx(results.bic)

    f_value, p_value = ev.overall_f_test(results.rsquared, int(results.nobs), 3)
    assert f_value == pytest.approx(results.fvalue)
    assert p_value == pytest.approx(results.f_pvalue, abs=1e-12)


def test_overall_f_test_invalid():
    with pytest.raises(ConfigError):
        ev.overall_f_test(0.5, 3, 2)
    with pytest.raises(ConfigError):
        ev.overall_f_test(0.5, 10, 0)


def test_evaluate_classification_logs(caplog, mock_logger):
    evaluator = ModelEvaluator(mock_logger)
    with caplog.at_level(logging.INFO, logger=mock_logger.name):
        result = evaluator.evaluate_classification(
            ['a', 'b', 'b'], ['a', 'b', 'a'], model_name='rf', labels=['a', 'b'], oob_error=0.2
        )

    assert result['metrics']['accuracy'] == pytest.approx(2 / 3)
    assert result['metrics']['error_rate'] == pytest.approx(1 / 3)
    assert result['metrics']['oob_error'] == pytest.approx(0.2)
    assert result['labels'] == ['a', 'b']
    assert '[EVALUATION] RF' in caplog.text
    assert 'ACCURACY' in caplog.text


def test_evaluate_regression(regression_df, test_config, mock_logger):
    train, test = regression_df.iloc[:100], regression_df.iloc[100:]
    fitted = RegressionTrainer(test_config).fit(train, 'y', ['x1', 'x2', 'group'])

    result = ModelEvaluator(mock_logger).evaluate_regression(fitted, test, model_name='ols')

    metrics = result['metrics']
    for key in ('r_squared', 'rmse', 'mae', 'train_r_squared', 'adjusted_r_squared',
                'f_statistic', 'aic', 'bic'):
        assert key in metrics
    assert metrics['r_squared'] > 0.8
    assert metrics['rmse'] >= metrics['mae'] > 0
    np.testing.assert_allclose(result['residuals'], result['y_true'] - result['y_pred'])
    assert len(result['y_pred']) == len(test)


def test_overall_f_test_perfect_fit():
    f_value, p_value = ev.overall_f_test(1.0, 20, 1)
    assert f_value == float('inf')
    assert p_value == 0.0
