"""
main.py
Điểm khởi chạy của dự án: parse CLI, load config, setup logger, chạy Pipeline.

Usage examples (CLI):
  python main.py                           # Full pipeline (classification + regression)
  python main.py --mode classify --optimize
  python main.py --data data/raw/coffee_ratings.csv --mode regress

Output duy nhất trên stdout là evaluation report dạng JSON; log được ghi ra stderr và artifacts/logs.

Important keywords: Args, Returns, Notes
"""
import argparse
import json
import sys

from coffee_quality.utils import ConfigLoader, Logger
from coffee_quality.pipeline import Pipeline, MODES


def main(argv=None) -> int:
    """
    Entry point chính của pipeline.

    Workflow ngắn gọn:
      1. Parse CLI args
      2. Load config và setup logger
      3. Chạy `Pipeline.run()` theo mode, in report JSON

    Returns:
        int: exit code (0 = thành công, 1 = lỗi)
    """
    parser = argparse.ArgumentParser(
        description="Coffee Quality Analysis Pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                                  # Full pipeline
  python main.py --mode classify --optimize       # Random forest + mtry tuning
  python main.py --data path/to/coffee.csv        # Local file thay cho URL mặc định
        """
    )

    parser.add_argument('--mode', type=str, default='full', choices=list(MODES),
                        help='Chế độ chạy pipeline (default: full)')

    parser.add_argument('--data', type=str, default=None,
                        help="Đường dẫn file hoặc URL dữ liệu. Nếu không cung cấp sẽ dùng config")

    parser.add_argument('--optimize', action='store_true',
                        help="Bật tuning số biến thử mỗi split cho random forest")

    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help="Đường dẫn file config")

    args = parser.parse_args(argv)

    try:
        config = ConfigLoader.load_config(args.config)
        log_cfg = config.get('logging', {}) or {}
        logger = Logger.get_logger(
            name='MAIN',
            log_dir=(config.get('artifacts', {}) or {}).get('logs_dir', 'artifacts/logs'),
            level=log_cfg.get('level', 'INFO'),
            to_file=log_cfg.get('to_file', True),
        )
    except Exception as e:
        print(f"[INIT ERROR] {e}", file=sys.stderr)
        return 1

    logger.info("=" * 60)
    logger.info("COFFEE QUALITY PIPELINE")
    logger.info("=" * 60)
    logger.info(f"   Mode     : {args.mode.upper()}")
    logger.info(f"   Data     : {args.data or config.get('data', {}).get('source')}")
    logger.info(f"   Optimize : {args.optimize}")
    logger.info("=" * 60)

    try:
        pipeline = Pipeline(config, logger)
        report = pipeline.run(mode=args.mode, source=args.data, optimize=args.optimize or None)
    except KeyboardInterrupt:
        logger.warning("\n[STOP] Pipeline interrupted by user.")
        return 1
    except Exception as e:
        logger.critical(f"\n[FAILURE] Pipeline Error: {e}", exc_info=True)
        return 1

    print(json.dumps(report, indent=2, ensure_ascii=False))
    logger.info("[SUCCESS] Pipeline Completed!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
