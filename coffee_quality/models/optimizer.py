"""
Hyperparameter optimization cho random forest (ModelOptimizer).

Tìm số biến thử ở mỗi split (mtry) theo OOB error: bắt đầu từ giá trị mặc định,
lần lượt chia / nhân cho `step_factor` theo hai hướng và dừng một hướng khi mức cải
thiện tương đối của OOB error nhỏ hơn ngưỡng `improve`.

Important keywords: Args, Returns, Methods, Notes
"""
import math
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ..exceptions import ConfigError
from .classifier import ClassifierTrainer, default_split_variable_count


class ModelOptimizer:
    """
    Tối ưu split-variable count cho ClassifierTrainer bằng OOB error.

    Methods:
        tune(trainer, train_df, output_col, input_cols, ...)
    """

    def __init__(self, config: Dict, logger=None):
        """Khởi tạo ModelOptimizer.

        Args:
            config (Dict): cấu hình, đọc section 'tuning'
                (step_factor, improve, tree_count, candidates)
            logger: logger tùy chọn
        """
        self.config = config
        self.logger = logger
        self.cfg = config.get('tuning', {}) or {}

    def tune(self, trainer: ClassifierTrainer, train_df: pd.DataFrame, output_col: str,
             input_cols: List[str], candidates: Optional[Sequence[int]] = None,
             step_factor: Optional[float] = None, improve: Optional[float] = None,
             start: Optional[int] = None, tree_count: Optional[int] = None,
             random_state: Optional[int] = None) -> Tuple[int, pd.DataFrame]:
        """Chạy tìm kiếm mtry và trả về (best_split_variable_count, history).

        Args:
            trainer: ClassifierTrainer dùng để refit từng candidate
            train_df, output_col, input_cols: dữ liệu và công thức như ClassifierTrainer.fit
            candidates: danh sách mtry cố định; nếu có thì đánh giá hết (bỏ qua step search)
            step_factor: hệ số nhân/chia giữa hai candidate liên tiếp (> 1)
            improve: ngưỡng cải thiện tương đối tối thiểu để đi tiếp một hướng
            start: mtry bắt đầu. Default: round(sqrt(len(input_cols)))
            tree_count: số cây cho mỗi lần refit
            random_state: seed dùng chung cho mọi refit

        Returns:
            (best_split_variable_count, history DataFrame với các cột
             split_variable_count, oob_error, direction)

        Notes:
            - Mọi refit dùng cùng một seed tường minh nên kết quả không phụ thuộc thứ tự đánh giá.
            - Hòa OOB error -> chọn mtry nhỏ hơn.
            - Candidate có OOB error NaN (quá ít cây) không được chọn.

        Raises:
            ConfigError: step_factor / improve / candidates không hợp lệ, hoặc mọi OOB error đều NaN.
        """
        n_inputs = len(input_cols)
        step_factor = float(step_factor if step_factor is not None else self.cfg.get('step_factor', 2.0))
        improve = float(improve if improve is not None else self.cfg.get('improve', 0.05))
        tree_count = tree_count or self.cfg.get('tree_count')
        if candidates is None:
            candidates = self.cfg.get('candidates')
        if step_factor <= 1.0:
            raise ConfigError(f"step_factor must be > 1, got {step_factor}")
        if improve < 0:
            raise ConfigError(f"improve must be >= 0, got {improve}")

        if self.logger:
            self.logger.info(f"\n[OPTIMIZING] RANDOM FOREST MTRY")
            self.logger.info(f" Step factor: {step_factor} | Improve: {improve} | Trees: {tree_count or 'default'}")

        start_time = datetime.now()
        results: Dict[int, float] = {}
        history = []

        def evaluate(mtry: int, direction: str) -> float:
            if mtry not in results:
                fitted = trainer.fit(train_df, output_col, input_cols, tree_count=tree_count,
                                     split_variable_count=mtry, random_state=random_state)
                results[mtry] = fitted.oob_error
                history.append({'split_variable_count': mtry, 'oob_error': results[mtry], 'direction': direction})
                if self.logger:
                    self.logger.info(f" mtry = {mtry:>3d} | OOB error = {results[mtry]:.4f} | {direction}")
            return results[mtry]

        if candidates:
            for mtry in sorted({int(c) for c in candidates}):
                if not 1 <= mtry <= n_inputs:
                    raise ConfigError(f"Candidate split_variable_count {mtry} outside [1, {n_inputs}]")
                evaluate(mtry, 'grid')
        else:
            start = int(start or default_split_variable_count(n_inputs))
            start_error = evaluate(start, 'start')

            for direction in ('down', 'up'):
                current, error_prev = start, start_error
                while True:
                    if direction == 'down':
                        nxt = max(1, int(math.floor(current / step_factor)))
                    else:
                        nxt = min(n_inputs, int(math.ceil(current * step_factor)))
                    if nxt == current:
                        break
                    error_cur = evaluate(nxt, direction)
                    improvement = 1.0 - error_cur / error_prev if error_prev > 0 else 0.0
                    # NaN (chưa có vote OOB) cũng dừng hướng này
                    if not improvement >= improve:
                        break
                    current, error_prev = nxt, error_cur

        history_df = pd.DataFrame(history, columns=['split_variable_count', 'oob_error', 'direction'])
        scored = {m: e for m, e in results.items() if not math.isnan(e)}
        if not scored:
            raise ConfigError("OOB error is undefined for every candidate; increase tree_count")
        best = min(scored, key=lambda m: (scored[m], m))

        if self.logger:
            optimization_time = (datetime.now() - start_time).total_seconds()
            self.logger.info(f" Time: {optimization_time:.2f}s | Best OOB ERROR: {results[best]:.4f}")
            self.logger.info(f" Best Params: {{'split_variable_count': {best}}}")

        return best, history_df
