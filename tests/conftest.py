"""
tests/conftest.py

Shared fixtures dùng chung cho toàn bộ test suite.
Bao gồm cấu hình mẫu, data fixtures (coffee ratings giả lập), temporary directories, và logger.
"""
import pytest
import pandas as pd
import numpy as np
import os
import sys
import copy
import tempfile
import shutil

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

SCORES = ['aroma', 'flavor', 'aftertaste', 'acidity', 'body', 'balance',
          'uniformity', 'clean_cup', 'sweetness', 'cupper_points']


# ==================== CONFIG FIXTURES ====================

_TEST_CONFIG = {
    'data': {
        'source': 'data/raw/coffee_ratings.csv',
    },
    'cleaning': {
        'columns': ['total_cup_points', 'species', 'country_of_origin', 'processing_method', 'variety']
                   + SCORES + ['moisture', 'color', 'altitude_mean_meters'],
        'categorical_columns': ['species', 'country_of_origin', 'processing_method', 'variety', 'color'],
        'altitude_col': 'altitude_mean_meters',
        'altitude_bound': 3500,
    },
    'split': {
        'train_fraction': 0.7,
        'seed': 123,
    },
    'classification': {
        'output_col': 'processing_method',
        'input_cols': None,
        'tree_count': 40,
        'random_state': 123,
        'n_jobs': 1,
    },
    'tuning': {
        'enabled': False,
        'step_factor': 2.0,
        'improve': 0.05,
        'tree_count': 30,
    },
    'regression': {
        'output_col': 'total_cup_points',
        'input_cols': SCORES + ['moisture', 'altitude_mean_meters'],
        'backward_elimination': True,
    },
    'artifacts': {
        'save': False,
    },
    'logging': {
        'level': 'INFO',
        'to_file': False,
    },
}


@pytest.fixture
def test_config():
    """Cấu hình mẫu dùng cho tests (deep copy để test được phép sửa)."""
    return copy.deepcopy(_TEST_CONFIG)


# ==================== DATA FIXTURES ====================

def make_coffee_df(n_samples: int = 200, seed: int = 42) -> pd.DataFrame:
    """Sinh DataFrame mô phỏng coffee ratings (dạng RAW: có missing, outlier altitude, cột thừa)."""
    rng = np.random.default_rng(seed)

    processing = rng.choice(['Washed / Wet', 'Natural / Dry'], n_samples, p=[0.6, 0.4])
    washed = (processing == 'Washed / Wet').astype(float)

    data = {
        'owner': rng.choice(['farm a', 'farm b', 'coop c'], n_samples),
        'species': rng.choice(['Arabica', 'Robusta'], n_samples, p=[0.85, 0.15]),
        'country_of_origin': rng.choice(['Ethiopia', 'Colombia', 'Brazil'], n_samples),
        'processing_method': processing,
        'variety': rng.choice(['Bourbon', 'Caturra', 'Typica'], n_samples),
        'color': rng.choice(['Green', 'Bluish-Green', 'Blue-Green'], n_samples),
    }
    for i, col in enumerate(SCORES):
        shift = 0.4 * washed if i < 3 else 0.0
        data[col] = np.round(7.3 + shift + rng.normal(0, 0.25, n_samples), 2)

    df = pd.DataFrame(data)
    df['moisture'] = np.round(rng.uniform(0.0, 0.13, n_samples), 2)
    df['altitude_mean_meters'] = np.round(rng.uniform(800, 2200, n_samples) + 300 * washed, 1)
    df['total_cup_points'] = np.round(df[SCORES].sum(axis=1) + rng.normal(0, 0.5, n_samples), 2)

    # Missing values & altitude outliers
    df.loc[0:4, 'altitude_mean_meters'] = np.nan
    df.loc[5:7, 'variety'] = np.nan
    df.loc[8:9, 'altitude_mean_meters'] = [190164.0, 4287.0]
    df.loc[10, 'owner'] = np.nan
    return df


@pytest.fixture
def sample_raw_coffee_df():
    """Sample RAW DataFrame (200 dòng) cho testing."""
    return make_coffee_df()


@pytest.fixture
def sample_clean_coffee_df(sample_raw_coffee_df, test_config):
    """DataFrame đã clean (categorical dtype, không missing, altitude < 3500)."""
    from coffee_quality.data.preprocessor import DataPreprocessor
    return DataPreprocessor(test_config).clean_data(sample_raw_coffee_df)


@pytest.fixture
def sample_train_test_split(sample_clean_coffee_df, test_config):
    """Chia sample clean data thành (train_df, test_df) với seed cố định."""
    from coffee_quality.data.preprocessor import DataPreprocessor
    return DataPreprocessor(test_config).split_data(sample_clean_coffee_df)


@pytest.fixture
def regression_df():
    """
    Dữ liệu hồi quy có cấu trúc biết trước: y phụ thuộc x1, x2 và group; noise1..noise3 là nhiễu.
    """
    rng = np.random.default_rng(7)
    n = 150
    df = pd.DataFrame({
        'x1': rng.normal(0, 1, n),
        'x2': rng.normal(0, 1, n),
        'noise1': rng.normal(0, 1, n),
        'noise2': rng.normal(0, 1, n),
        'noise3': rng.normal(0, 1, n),
        'group': pd.Categorical(rng.choice(['a', 'b', 'c'], n), categories=['a', 'b', 'c']),
    })
    group_effect = df['group'].map({'a': 0.0, 'b': 1.5, 'c': -1.0}).astype(float)
    df['y'] = 3.0 + 2.0 * df['x1'] - 1.0 * df['x2'] + group_effect + rng.normal(0, 0.5, n)
    return df


# ==================== TEMP DIRECTORY FIXTURES ====================

@pytest.fixture
def temp_dir():
    """Tạo temp directory cho tests và xoá khi xong."""
    tmp = tempfile.mkdtemp()
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def raw_csv_path(temp_dir, sample_raw_coffee_df):
    """Ghi sample RAW data ra CSV và trả về đường dẫn."""
    path = os.path.join(temp_dir, 'coffee_ratings.csv')
    sample_raw_coffee_df.to_csv(path, index=False)
    return path


# ==================== LOGGER ====================

@pytest.fixture
def mock_logger():
    """Mock logger đơn giản cho tests (logging basic)."""
    import logging
    logger = logging.getLogger('test_logger')
    logger.setLevel(logging.DEBUG)
    return logger
