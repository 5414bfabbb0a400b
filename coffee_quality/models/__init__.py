"""
coffee_quality/models/__init__.py

ML Models Module - Training, Optimization, Evaluation.
    - ClassifierTrainer / FittedClassifier: Random forest
    - ModelOptimizer: Tuning số biến thử mỗi split theo OOB error
    - RegressionTrainer / FittedRegressor: OLS + backward elimination
    - ModelEvaluator: Tính metrics
"""
from .classifier import ClassifierTrainer, FittedClassifier
from .optimizer import ModelOptimizer
from .regressor import RegressionTrainer, FittedRegressor, EliminationStep
from .evaluator import ModelEvaluator

__all__ = [
    'ClassifierTrainer', 'FittedClassifier',
    'ModelOptimizer',
    'RegressionTrainer', 'FittedRegressor', 'EliminationStep',
    'ModelEvaluator'
]
