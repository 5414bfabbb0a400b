"""
tests/test_models/test_regressor.py

Unit tests cho `RegressionTrainer` / `FittedRegressor`: OLS, summary, backward elimination.
"""
import numpy as np
import pandas as pd
import pytest

from coffee_quality.exceptions import ColumnTypeError, ConfigError, SchemaError, SingularMatrixError
from coffee_quality.models.regressor import EliminationStep, RegressionTrainer

INPUTS = ['x1', 'x2', 'noise1', 'noise2', 'noise3', 'group']


@pytest.fixture
def trainer(test_config, mock_logger):
    return RegressionTrainer(test_config, mock_logger)


def test_coefficients_match_least_squares(trainer, regression_df):
    fitted = trainer.fit(regression_df, 'y', ['x1', 'x2', 'group'])

    design = np.column_stack([
        np.ones(len(regression_df)),
        regression_df['x1'],
        regression_df['x2'],
        (regression_df['group'] == 'b').astype(float),
        (regression_df['group'] == 'c').astype(float),
    ])
    expected, *_ = np.linalg.lstsq(design, regression_df['y'].to_numpy(), rcond=None)

    assert list(fitted.coefficients.index) == ['const', 'x1', 'x2', 'group[b]', 'group[c]']
    np.testing.assert_allclose(fitted.coefficients.to_numpy(), expected, rtol=1e-8, atol=1e-10)
    # hệ số gần với cấu trúc sinh dữ liệu
    assert fitted.coefficients['x1'] == pytest.approx(2.0, abs=0.2)
    assert fitted.coefficients['group[b]'] == pytest.approx(1.5, abs=0.3)


def test_residuals_and_fitted_values(trainer, regression_df):
    fitted = trainer.fit(regression_df, 'y', INPUTS)

    np.testing.assert_allclose(
        fitted.residuals.to_numpy(), regression_df['y'].to_numpy() - fitted.fitted_values.to_numpy()
    )
    np.testing.assert_allclose(trainer.predict(fitted, regression_df).to_numpy(), fitted.fitted_values.to_numpy())
    assert abs(fitted.residuals.sum()) < 1e-8


def test_summary_statistics(trainer, regression_df):
    fitted = trainer.fit(regression_df, 'y', INPUTS)
    summary = trainer.summary(fitted)
    results = fitted._results

    for key in ('coefficients', 'standard_errors', 't_statistics', 'p_values'):
        assert list(summary[key].index) == list(fitted.coefficients.index)
    assert summary['r_squared'] == pytest.approx(results.rsquared)
    assert summary['adjusted_r_squared'] == pytest.approx(results.rsquared_adj)
    assert summary['f_statistic'] == pytest.approx(results.fvalue)
    assert summary['overall_p_value'] == pytest.approx(results.f_pvalue, abs=1e-12)
    assert summary['aic'] == pytest.approx(results.aic)
    assert summary['bic'] == pytest.approx(results.bic)
    assert summary['n_obs'] == len(regression_df)
    assert summary['df_resid'] == len(regression_df) - len(fitted.coefficients)
    # x1 có ý nghĩa, noise thường không
    assert summary['p_values']['x1'] < 0.001


def test_collinear_predictors_raise(trainer, regression_df):
    df = regression_df.copy()
    df['x1_copy'] = df['x1'] * 2.0
    with pytest.raises(SingularMatrixError):
        trainer.fit(df, 'y', ['x1', 'x1_copy'])
    with pytest.raises(np.linalg.LinAlgError):
        trainer.fit(df, 'y', ['x1', 'x1_copy'])


def test_invalid_columns(trainer, regression_df):
    df = regression_df.copy()
    df['label'] = df['group'].astype(str)

    with pytest.raises(ColumnTypeError):
        trainer.fit(df, 'y', ['x1', 'label'])
    with pytest.raises(ColumnTypeError):
        trainer.fit(df, 'group', ['x1'])
    with pytest.raises(SchemaError):
        trainer.fit(df, 'y', ['x1', 'x9'])
    with pytest.raises(ConfigError):
        trainer.fit(df, 'y', [])


def test_backward_elimination_invariants(trainer, regression_df):
    """AIC không bao giờ tăng; các bước nối tiếp nhau; predictors thật được giữ lại."""
    full = trainer.fit(regression_df, 'y', INPUTS)
    reduced = trainer.backward_eliminate(full, regression_df, 'y')

    assert reduced.aic <= full.aic
    assert set(reduced.input_cols) <= set(full.input_cols)
    assert {'x1', 'x2', 'group'} <= set(reduced.input_cols)
    assert len(reduced.input_cols) == len(full.input_cols) - len(reduced.elimination_steps)

    previous = full.aic
    for step in reduced.elimination_steps:
        assert isinstance(step, EliminationStep)
        assert step.aic_before == pytest.approx(previous)
        assert step.aic_after < step.aic_before
        assert step.removed not in reduced.input_cols
        previous = step.aic_after
    assert reduced.aic == pytest.approx(previous)


def test_first_step_is_best_single_removal(trainer, regression_df):
    full = trainer.fit(regression_df, 'y', INPUTS)
    reduced = trainer.backward_eliminate(full, regression_df)

    removal_aic = {
        col: trainer.fit(regression_df, 'y', [c for c in INPUTS if c != col]).aic
        for col in INPUTS
    }
    best_col = min(removal_aic, key=removal_aic.get)

    if removal_aic[best_col] < full.aic:
        first = reduced.elimination_steps[0]
        assert first.removed == best_col
        assert first.aic_after == pytest.approx(removal_aic[best_col])
    else:
        assert reduced.elimination_steps == ()


def test_final_model_cannot_be_improved(trainer, regression_df):
    full = trainer.fit(regression_df, 'y', INPUTS)
    reduced = trainer.backward_eliminate(full, regression_df)

    for col in reduced.input_cols:
        remaining = [c for c in reduced.input_cols if c != col]
        candidate = trainer.fit(regression_df, 'y', remaining)
        assert candidate.aic >= reduced.aic


def test_single_predictor_is_kept(trainer, regression_df):
    fitted = trainer.fit(regression_df, 'y', ['noise1'])
    reduced = trainer.backward_eliminate(fitted, regression_df)

    assert reduced.input_cols == ['noise1']
    assert reduced.elimination_steps == ()


def test_backward_eliminate_output_mismatch(trainer, regression_df):
    fitted = trainer.fit(regression_df, 'y', ['x1', 'x2'])
    with pytest.raises(ConfigError):
        trainer.backward_eliminate(fitted, regression_df, 'x1')


def test_predict_on_new_rows(trainer, regression_df):
    train, test = regression_df.iloc[:100], regression_df.iloc[100:]
    fitted = trainer.fit(train, 'y', ['x1', 'x2', 'group'])

    pred = fitted.predict(test)
    manual = (
        fitted.coefficients['const']
        + fitted.coefficients['x1'] * test['x1']
        + fitted.coefficients['x2'] * test['x2']
        + fitted.coefficients['group[b]'] * (test['group'] == 'b')
        + fitted.coefficients['group[c]'] * (test['group'] == 'c')
    )
    assert pred.name == 'y_pred'
    assert pred.index.equals(test.index)
    np.testing.assert_allclose(pred.to_numpy(), manual.to_numpy(dtype=float))


def test_label_only_outside_training_rows(trainer):
    """Nhãn chỉ có ở dòng ngoài tập train: không tạo cột indicator toàn 0, predict nhãn đó -> ColumnTypeError."""
    rng = np.random.default_rng(3)
    countries = ['Brazil'] * 50 + ['Ethiopia'] * 49 + ['Laos']
    df = pd.DataFrame({
        'x1': rng.normal(0, 1, 100),
        'country_of_origin': pd.Categorical(countries, categories=['Brazil', 'Ethiopia', 'Laos']),
    })
    df['y'] = 1.0 + df['x1'] + (df['country_of_origin'] == 'Ethiopia') * 0.5 + rng.normal(0, 0.1, 100)
    train, held_out = df.iloc[:99], df.iloc[99:]

    fitted = trainer.fit(train, 'y', ['x1', 'country_of_origin'])

    assert list(fitted.coefficients.index) == ['const', 'x1', 'country_of_origin[Ethiopia]']
    assert fitted.categories == {'country_of_origin': ('Brazil', 'Ethiopia')}
    assert len(fitted.predict(train)) == 99
    with pytest.raises(ColumnTypeError, match='Laos'):
        fitted.predict(held_out)

    reduced = trainer.backward_eliminate(fitted, train)
    assert 'x1' in reduced.input_cols


def test_exact_linear_fit(trainer):
    """y là hàm tuyến tính chính xác của x1: fit (có logger) không lỗi, F = inf, p = 0."""
    df = pd.DataFrame({'x1': np.arange(20, dtype=float)})
    df['y'] = 2.0 * df['x1'] + 1.0

    fitted = trainer.fit(df, 'y', ['x1'])
    summary = trainer.summary(fitted)

    assert fitted.coefficients['x1'] == pytest.approx(2.0)
    assert fitted.coefficients['const'] == pytest.approx(1.0)
    assert summary['r_squared'] == pytest.approx(1.0)
    assert summary['f_statistic'] > 1e6
    assert summary['overall_p_value'] == pytest.approx(0.0, abs=1e-12)
