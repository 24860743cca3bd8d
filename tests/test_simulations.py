from __future__ import annotations

import simulations
from core.models import ResultRecord


def test_list_strategies(capsys):
    assert simulations.main(['--list-strategies']) == 0
    out = capsys.readouterr().out
    assert 'momentum_pullback' in out
    assert 'micro_reversion' in out


def test_invalid_timeframes_exit_with_configuration_error(tmp_path):
    argv = ['--symbols', 'NVDA', '--timeframes', '1h:15m', '--results', str(tmp_path / 'r.json'),
            '--checkpoint', str(tmp_path / 'p.json')]
    assert simulations.main(argv) == 2


def test_missing_symbols_file(tmp_path):
    assert simulations.main(['--symbols-file', str(tmp_path / 'missing.csv')]) == 2


def test_parser_defaults():
    args = simulations.build_parser().parse_args([])
    assert args.workers == 2
    assert args.cooldown == 8
    assert args.lookback_days == 180
    assert not args.fresh


def test_print_best_results(capsys):
    simulations.print_best_results([
        ResultRecord('NVDA', 'trend_spike', 62.5, 8, 5, 3, 4.25, 1.8),
    ])
    out = capsys.readouterr().out
    assert 'NVDA' in out
    assert '62.50%' in out

    simulations.print_best_results([])
    assert 'No results' in capsys.readouterr().out
