"""
tests/test_main.py

Tests cho CLI `main.py`: exit code và report JSON trên stdout.
"""
import json
import os

import yaml

from main import main


def _write_config(config, temp_dir):
    config = dict(config)
    config['artifacts'] = {'save': False, 'logs_dir': os.path.join(temp_dir, 'logs')}
    path = os.path.join(temp_dir, 'config.yaml')
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(config, f)
    return path


def test_main_regress_prints_json(test_config, temp_dir, raw_csv_path, capsys):
    config_path = _write_config(test_config, temp_dir)

    code = main(['--config', config_path, '--data', raw_csv_path, '--mode', 'regress'])

    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert 'regression' in report
    assert 'classification' not in report


def test_main_bad_config_returns_1(temp_dir, capsys):
    code = main(['--config', os.path.join(temp_dir, 'missing.yaml')])

    assert code == 1
    captured = capsys.readouterr()
    assert captured.out == ''
    assert 'INIT ERROR' in captured.err


def test_main_pipeline_error_returns_1(test_config, temp_dir, capsys):
    config_path = _write_config(test_config, temp_dir)

    code = main(['--config', config_path, '--data', os.path.join(temp_dir, 'missing.csv')])

    assert code == 1
    assert capsys.readouterr().out == ''
