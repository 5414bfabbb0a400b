"""
Tiện ích chung (utils) cho dự án: IO, logging, config, helper.

Tóm tắt:
- File I/O cho bảng dữ liệu (path hoặc URL), model (joblib) và kết quả (JSON/YAML).
- ConfigLoader đọc YAML, Logger cấu hình console + system log.

Important keywords: Args, Returns, Raises, Notes, Class
"""

import os, sys, yaml, json, logging, joblib, re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict
from urllib.parse import urlparse
import numpy as np
import pandas as pd

_last_system_message_global: str = ""

LOG_FILE_TIME_FMT = "%Y-%m-%d %H:%M:%S"
LOG_CONSOLE_TIME_FMT = "%H:%M:%S"
LOG_SYSTEM_FMT = "[%(asctime)s] | %(levelname)-7s | %(name)-15s | %(message)s"
LOG_CONSOLE_FMT = "[%(asctime)s] | %(levelname)-7s | %(message)s"


# ===================== Helper functions =====================

def ensure_dir(dir_path: str) -> None:
    """Tạo thư mục nếu chưa tồn tại.

    Args:
        dir_path (str): Đường dẫn thư mục (bỏ qua nếu rỗng).
    """
    if not dir_path:
        return
    os.makedirs(dir_path, exist_ok=True)


def get_timestamp() -> str:
    """
    Trả về timestamp theo format YYYYMMDD_HHMMSS.

    Returns:
        str: timestamp hiện tại.
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def is_url(source: str) -> bool:
    """True nếu `source` là URL http(s)/ftp thay vì đường dẫn local."""
    return urlparse(str(source)).scheme in ('http', 'https', 'ftp')


def extract_base_filename(source: str) -> str:
    """
    Lấy tên file không phần mở rộng (basename), hoạt động cả với URL.

    Args:
        source (str): Đường dẫn file hoặc URL.

    Returns:
        str: Base filename (without extension).
    """
    if is_url(source):
        source = urlparse(source).path
    return Path(source).stem


def to_builtin(obj: Any) -> Any:
    """
    Chuyển numpy/pandas objects về kiểu Python thuần để ghi JSON.

    Notes:
        - DataFrame -> dict theo cột, Series/ndarray -> list.
    """
    if isinstance(obj, dict):
        return {str(k): to_builtin(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_builtin(v) for v in obj]
    if isinstance(obj, pd.DataFrame):
        return {str(k): to_builtin(v) for k, v in obj.to_dict(orient='index').items()}
    if isinstance(obj, pd.Series):
        return to_builtin(obj.tolist())
    if isinstance(obj, np.ndarray):
        return to_builtin(obj.tolist())
    if isinstance(obj, np.integer):
        return int(obj)
    if isinstance(obj, np.floating):
        return float(obj)
    if isinstance(obj, np.bool_):
        return bool(obj)
    return obj


# ===================== Config Loader =====================

class ConfigLoader:
    """
    Hỗ trợ tải và kiểm tra tính hợp lệ của file cấu hình YAML.

    Methods:
        load_config: Tải file YAML và trả về dictionary.
    """

    @staticmethod
    def load_config(config_path: str = "config/config.yaml") -> Dict:
        """
        Đọc file cấu hình YAML.

        Args:
            config_path (str, optional): Đường dẫn tới file config. Defaults to "config/config.yaml".

        Returns:
            Dict: Nội dung cấu hình.

        Raises:
            FileNotFoundError: Nếu file không tồn tại.
            ValueError: Nếu file rỗng hoặc không đúng định dạng.
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Error parsing YAML config: {e}") from e

        if config is None:
            raise ValueError(f"Config file is empty or invalid: {config_path}")

        if not isinstance(config, dict):
            raise ValueError(f"Config root must be a mapping (dict): {config_path}")

        return config


# ===================== Logger =====================

class SystemMsgCleaner(logging.Filter):
    """Bộ làm sạch thông điệp log: Loại bỏ dòng trống thừa, chuẩn hóa các dòng phân cách và khử trùng lặp liên tiếp."""

    def filter(self, record):
        msg = str(record.getMessage())
        msg = re.sub(r"\n\s*\n+", "\n", msg).strip()

        if re.fullmatch(r"=+", msg):
            msg = '=' * 60

        if not msg:
            return False

        # Khử các separator lặp liên tiếp
        global _last_system_message_global
        if _last_system_message_global == msg and re.fullmatch(r"[=\-]+", msg):
            return False
        _last_system_message_global = msg

        record.msg = msg
        record.args = ()
        return True


class Logger:
    """
    Logging cho pipeline:

        - CONSOLE: INFO trở lên, format ngắn gọn cho người dùng.
        - SYSTEM LOG (artifacts/logs/<name>_<timestamp>.log): toàn bộ DEBUG,
          format có tên module, dùng để debug.
    """
    _loggers: Dict[str, logging.Logger] = {}

    @classmethod
    def get_logger(cls, name: str, log_dir: str = None, level: str = "INFO",
                   to_file: bool = True) -> logging.Logger:
        """
        Tạo (hoặc lấy lại) logger theo tên.

        Args:
            name: Tên logger (thường là 'MAIN')
            log_dir: Thư mục system logs (default: 'artifacts/logs')
            level: Log level cho console (default: 'INFO')
            to_file: Có ghi system log ra file không

        Returns:
            logging.Logger: Configured logger instance
        """
        if name in cls._loggers:
            return cls._loggers[name]

        if log_dir is None:
            log_dir = "artifacts/logs"

        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)

        if logger.hasHandlers():
            logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(getattr(logging, str(level).upper(), logging.INFO))
        console_handler.setFormatter(logging.Formatter(LOG_CONSOLE_FMT, datefmt=LOG_CONSOLE_TIME_FMT))
        console_handler.addFilter(SystemMsgCleaner())
        logger.addHandler(console_handler)

        if to_file:
            ensure_dir(log_dir)
            system_log_file = os.path.join(log_dir, f"{name}_{get_timestamp()}.log")
            file_handler = logging.FileHandler(system_log_file, encoding="utf-8")
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(LOG_SYSTEM_FMT, datefmt=LOG_FILE_TIME_FMT))
            file_handler.addFilter(SystemMsgCleaner())
            logger.addHandler(file_handler)

        cls._loggers[name] = logger
        return logger


# ===================== IO Handler =====================

class IOHandler:
    """
    Lớp tiện ích xử lý các thao tác Nhập/Xuất (I/O) tập trung:
    - Đọc/Ghi dữ liệu bảng (CSV, Excel, Parquet, JSON), đọc CSV trực tiếp từ URL.
    - Lưu/Tải mô hình (Joblib).
    - Đọc/Ghi kết quả (JSON, YAML).
    """

    _SUPPORTED_EXT = {".csv", ".xlsx", ".xls", ".json", ".parquet"}

    @staticmethod
    def read_data(source: str, **kwargs) -> pd.DataFrame:
        """
        Đọc dữ liệu từ file local hoặc URL.

        Args:
            source (str): Đường dẫn file hoặc URL (http/https). URL không có
                phần mở rộng được đọc như CSV.
            **kwargs: Tham số phụ cho hàm đọc của pandas.

        Returns:
            pd.DataFrame: DataFrame chứa dữ liệu.

        Raises:
            FileNotFoundError: File local không tồn tại.
            ValueError: Định dạng không hỗ trợ.
            IOError: Lỗi khi tải dữ liệu từ URL.
        """
        remote = is_url(source)
        if not remote and not os.path.exists(source):
            raise FileNotFoundError(f"File not found: {source}")

        ext = Path(urlparse(source).path if remote else source).suffix.lower()
        if remote and ext not in IOHandler._SUPPORTED_EXT:
            ext = '.csv'

        try:
            if ext == '.csv':
                return pd.read_csv(source, **kwargs)
            elif ext in ('.xlsx', '.xls'):
                return pd.read_excel(source, sheet_name=kwargs.get('sheet_name', 0))
            elif ext == '.parquet':
                return pd.read_parquet(source)
            elif ext == '.json':
                return pd.read_json(source)
        except (OSError, pd.errors.ParserError) as e:
            if remote:
                raise IOError(f"Error fetching {source}: {e}") from e
            raise

        raise ValueError(f"Unsupported file extension: {ext}")

    @staticmethod
    def save_data(df: pd.DataFrame, file_path: str, **kwargs) -> None:
        """
        Lưu DataFrame xuống file với định dạng tương ứng đuôi file.

        Args:
            df (pd.DataFrame): Dữ liệu cần lưu.
            file_path (str): Đường dẫn đích.
        """
        ensure_dir(os.path.dirname(file_path))
        ext = Path(file_path).suffix.lower()

        if ext not in IOHandler._SUPPORTED_EXT:
            raise ValueError(
                f"Unsupported file format: {ext}. "
                f"Supported: {', '.join(sorted(IOHandler._SUPPORTED_EXT))}"
            )

        try:
            if ext == ".csv":
                df.to_csv(file_path, index=False, **kwargs)
            elif ext in {".xlsx", ".xls"}:
                df.to_excel(file_path, index=False, **kwargs)
            elif ext == ".json":
                df.to_json(file_path, **kwargs)
            elif ext == ".parquet":
                df.to_parquet(file_path, index=False, **kwargs)
        except Exception as e:
            raise IOError(f"Error saving file {file_path}: {e}") from e

    # ---------- Model IO ----------

    @staticmethod
    def save_model(model: Any, file_path: str) -> None:
        """
        Serialize và lưu mô hình đã fit xuống đĩa bằng joblib.

        Args:
            model (Any): Đối tượng mô hình (FittedClassifier / FittedRegressor).
            file_path (str): Đường dẫn lưu file.
        """
        ensure_dir(os.path.dirname(file_path))
        try:
            joblib.dump(model, file_path)
        except Exception as e:
            raise IOError(f"Error saving model to {file_path}: {e}") from e

    @staticmethod
    def load_model(file_path: str) -> Any:
        """
        Tải mô hình đã lưu từ đĩa lên bộ nhớ.

        Raises:
            FileNotFoundError: Nếu file không tồn tại.
        """
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"Model file not found: {file_path}")

        try:
            return joblib.load(file_path)
        except Exception as e:
            raise IOError(f"Error loading model from {file_path}: {e}") from e

    # ---------- JSON / YAML IO ----------

    @staticmethod
    def save_json(data: Dict, file_path: str, indent: int = 4) -> None:
        """
        Ghi dictionary xuống file JSON (numpy/pandas values được chuyển về kiểu thuần).

        Args:
            data (Dict): Dữ liệu cần lưu.
            file_path (str): Đường dẫn file đích.
            indent (int, optional): Số khoảng trắng thụt đầu dòng
        """
        ensure_dir(os.path.dirname(file_path))
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                json.dump(to_builtin(data), f, indent=indent, ensure_ascii=False)
        except Exception as e:
            raise IOError(f"Error saving JSON to {file_path}: {e}") from e

    @staticmethod
    def load_json(file_path: str) -> Dict:
        """
        Đọc nội dung từ file JSON và chuyển đổi thành Dictionary.

        Raises:
            FileNotFoundError: Nếu file không tồn tại.
            IOError: Nếu xảy ra lỗi khi đọc hoặc giải mã JSON.
        """
        if not os.path.exists(file_path):
            raise FileNotFoundError(f"JSON file not found: {file_path}")

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                return json.load(f)
        except Exception as e:
            raise IOError(f"Error loading JSON from {file_path}: {e}") from e

    @staticmethod
    def save_yaml(data: Dict, file_path: str, indent: int = 4) -> None:
        """Ghi dictionary xuống file YAML (dùng để lưu snapshot config của lần chạy)."""
        ensure_dir(os.path.dirname(file_path))
        try:
            with open(file_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(to_builtin(data), f, indent=indent, allow_unicode=True)
        except Exception as e:
            raise IOError(f"Error saving YAML to {file_path}: {e}") from e


# Public API for `coffee_quality/utils.py`
__all__ = [
    "ensure_dir",
    "get_timestamp",
    "is_url",
    "extract_base_filename",
    "to_builtin",
    "ConfigLoader",
    "SystemMsgCleaner",
    "Logger",
    "IOHandler",
]
