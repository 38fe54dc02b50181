"""
===============================================================================
TOPOLOGY ANALYSIS - Engine, Configuration and Output Test Suite
===============================================================================
End-to-end tests: YAML configuration loading and validation, range sweeps
in both aggregation modes, mobility normalization and the written series
and summary files.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pandas as pd
import pytest
import yaml
from numpy.testing import assert_allclose

from contact.obstruction import Building
from core.position import Position
from core.scenario import Scenario
from core.trajectory import Trajectory
from simulation.config import AnalysisConfig, load_config
from simulation.engine import AnalysisEngine, normalize_mobility, run_analysis
from simulation.output import format_range, write_overall
from topology.aggregator import OverallSummary, ProgressiveResult


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def scenario():
    """A static pair in range 10, a far node and a node passing node 0."""
    return Scenario(
        trajectories=[
            Trajectory([(0.0, Position(0.0, 0.0))]),
            Trajectory([(0.0, Position(5.0, 0.0))]),
            Trajectory([(0.0, Position(500.0, 0.0))]),
            Trajectory([
                (0.0, Position(50.0, 0.0)),
                (50.0, Position(0.0, 0.0)),
                (100.0, Position(50.0, 0.0)),
            ]),
        ],
        duration=100.0,
    )


@pytest.fixture
def config_file(tmp_path):
    data = {
        'analysis': {
            'mode': 'overall',
            'transmission_ranges': [10, 20.5],
            'intervals': {'mincut': 5},
            'workers': 1,
            'output_basename': str(tmp_path / 'scn'),
        }
    }
    path = tmp_path / 'analysis.yaml'
    with open(path, 'w') as f:
        yaml.safe_dump(data, f)
    return path


# =============================================================================
# Configuration
# =============================================================================

class TestConfig:

    def test_load_config(self, config_file):
        cfg = load_config(str(config_file))
        assert cfg.mode == 'overall'
        assert cfg.transmission_ranges == [10.0, 20.5]
        assert cfg.intervals == {'mincut': 5.0}
        assert 'uni' not in cfg.metrics

    def test_sample_config_loads(self):
        root = os.path.join(os.path.dirname(__file__), '..', '..')
        cfg = load_config(os.path.join(root, 'config', 'analysis_config.yaml'))
        assert cfg.mode == 'progressive'
        assert cfg.transmission_ranges

    @pytest.mark.parametrize("overrides", [
        {'mode': 'sometimes'},
        {'transmission_ranges': [-1.0]},
        {'transmission_ranges': []},
        {'metrics': ['diameter']},
        {'intervals': {'part': -1.0}},
        {'workers': 0},
        {'node_ranges': [10.0, 20.0]},
        {'bidirectional': False, 'mode': 'overall'},
    ])
    def test_invalid_values(self, overrides):
        data = {'transmission_ranges': [10.0]}
        data.update(overrides)
        with pytest.raises(ValueError):
            AnalysisConfig.from_dict(data)

    def test_unknown_key(self):
        with pytest.raises(ValueError):
            AnalysisConfig.from_dict({'transmission_ranges': [1.0], 'radius': 3})

    def test_directed_config(self):
        cfg = AnalysisConfig.from_dict({
            'bidirectional': False,
            'node_ranges': [10, 20],
            'metrics': ['uni', 'part'],
        })
        assert cfg.node_ranges == [10.0, 20.0]
        assert cfg.metrics == ['uni', 'part']


# =============================================================================
# Engine
# =============================================================================

class TestEngine:

    def test_progressive_sweep(self, scenario):
        cfg = AnalysisConfig(transmission_ranges=[10.0, 1000.0], metrics=['part'])
        results = AnalysisEngine(scenario, cfg).run()
        assert len(results) == 2
        assert all(isinstance(r, ProgressiveResult) for r in results)
        assert results[0].tx_range == 10.0
        # [0, 40]: {0,1} {2} {3};  [35, 65] (1,3) and [40, 60] (0,3) join 3
        part = results[0]['part'].samples()
        assert part[0] == (0.0, 3)
        assert (35.0, 2) in part
        # everything in range: one partition from t=0
        assert results[1]['part'].samples() == [(0.0, 1)]

    def test_overall_sweep_mobility_first_range_only(self, scenario):
        cfg = AnalysisConfig(transmission_ranges=[10.0, 20.0], mode='overall')
        engine = AnalysisEngine(scenario, cfg)
        results = engine.run()
        assert all(isinstance(r, OverallSummary) for r in results)
        assert results[0].mobility is not None and results[0].mobility > 0.0
        assert results[1].mobility is None
        summary = engine.get_summary()
        assert list(summary['range']) == [10.0, 20.0]
        diagnostics = engine.get_diagnostics()
        assert list(diagnostics['pairs_solved']) == [6, 6]

    def test_normalize_mobility(self):
        assert_allclose(normalize_mobility(100.0, 2, 100.0), 1.0)
        assert normalize_mobility(5.0, 1, 100.0) == 0.0

    def test_buildings_block_links(self):
        # node 0 inside a room, node 1 outside and off the door axis
        scn = Scenario(
            trajectories=[
                Trajectory([(0.0, Position(0.0, 0.0))]),
                Trajectory([(0.0, Position(5.0, 0.0))]),
            ],
            duration=100.0,
            buildings=[Building(-1.0, 1.0, -1.0, 1.0, doorx=-1.0, doory=0.5)],
        )
        cfg = AnalysisConfig(transmission_ranges=[10.0], mode='overall')
        summary = AnalysisEngine(scn, cfg).run()[0]
        assert summary.total_links == 0
        assert_allclose(summary.avg_partitions, 2.0)
        assert_allclose(summary.avg_degree, 0.0)

    def test_node_ranges_pass(self, scenario):
        cfg = AnalysisConfig(
            transmission_ranges=[], node_ranges=[10.0, 1.0, 1.0, 1.0],
            bidirectional=False, metrics=['uni'],
        )
        results = AnalysisEngine(scenario, cfg).run()
        assert len(results) == 1
        # 0 -> 1 is one-directional from t=0
        assert results[0]['unicnt'].samples()[0] == (0.0, 1)

    def test_directed_shared_range_keeps_links(self):
        scn = Scenario(
            trajectories=[
                Trajectory([(0.0, Position(0.0, 0.0))]),
                Trajectory([(0.0, Position(5.0, 0.0))]),
            ],
            duration=100.0,
        )
        cfg = AnalysisConfig(transmission_ranges=[10.0], bidirectional=False,
                             metrics=['nodedeg', 'part', 'uni'])
        result = AnalysisEngine(scn, cfg).run()[0]
        assert result['nodedeg'].samples() == [(0.0, 1.0)]
        assert result['part'].samples() == [(0.0, 1)]
        assert result['unicnt'].samples() == [(0.0, 0)]

    def test_directed_matches_bidirectional_for_shared_range(self, scenario):
        both = AnalysisConfig(transmission_ranges=[10.0], metrics=['part'])
        directed = AnalysisConfig(transmission_ranges=[10.0], metrics=['part'],
                                  bidirectional=False)
        expected = AnalysisEngine(scenario, both).run()[0]['part'].samples()
        result = AnalysisEngine(scenario, directed).run()[0]
        assert result['part'].samples() == expected
        assert result.context.pairs_solved == 12


# =============================================================================
# Output
# =============================================================================

class TestOutput:

    @pytest.mark.parametrize("tx_range, label", [(100.0, '100'), (12.5, '12.5'), (3, '3')])
    def test_format_range(self, tx_range, label):
        assert format_range(tx_range) == label

    def test_progressive_files(self, scenario, tmp_path):
        base = str(tmp_path / 'out' / 'scn')
        cfg = AnalysisConfig(transmission_ranges=[10.0], metrics=['nodedeg', 'part'])
        run_analysis(scenario, cfg, output_basename=base)
        deg_path = tmp_path / 'out' / 'scn.stats_10.nodedeg'
        part_path = tmp_path / 'out' / 'scn.stats_10.part'
        assert deg_path.exists() and part_path.exists()
        part = pd.read_csv(part_path, sep=' ', header=None, names=['time', 'value'])
        assert part.iloc[0]['time'] == 0.0
        assert part.iloc[0]['value'] == 3

    def test_overall_file(self, scenario, config_file, tmp_path):
        cfg = load_config(str(config_file))
        run_analysis(scenario, cfg)
        path = tmp_path / 'scn.stats'
        lines = path.read_text().splitlines()
        assert lines[0].startswith('# mobility=')
        assert lines[1].startswith('# "range"')
        table = pd.read_csv(path, sep=' ', header=None, comment='#')
        assert table.shape == (2, 9)
        assert_allclose(table[0], [10.0, 20.5])

    def test_overall_file_without_mobility(self, tmp_path):
        s = OverallSummary(5.0, 0.1, 1.0, 0.0, 2.0, 0.5, 3, 4.0, 7)
        path = write_overall([s], str(tmp_path / 'plain'))
        lines = path.read_text().splitlines()
        assert lines[0].startswith('# "range"')
        assert len(lines) == 2
