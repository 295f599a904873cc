"""
Resample Risk Simulator - Monte Carlo Engine Tests
End-to-end behaviour of simulate(): determinism, budgets, accounting and errors.
"""

import json
from dataclasses import replace

import numpy as np
import pytest
from datetime import datetime, timedelta

from config import SimulationParams
from core.trading_types import (
    ConfigurationError,
    DataInsufficiencyError,
    HistoricalTrade,
    SimulationCancelledError,
)
from simulation.monte_carlo import (
    CancellationToken,
    MonteCarloSimulator,
    TrialEngine,
    derive_trial_rng,
    simulate,
)
from simulation.worst_case import GuaranteedQuota, PoolAugmentation, simulation_budget


# ============================================================================
# Fixtures
# ============================================================================

START = datetime(2024, 1, 2, 10, 0)


def make_trades(strategy, pl, count, start_day=0, **kwargs):
    """Build count daily trades of one strategy with a fixed P/L."""
    return [
        HistoricalTrade(
            strategy=strategy,
            date_opened=START + timedelta(days=start_day + i),
            pl=pl,
            **kwargs
        )
        for i in range(count)
    ]


@pytest.fixture
def mixed_trades():
    """10 winners of +100 in A and 10 losers of -50 in B."""
    return make_trades('A', 100.0, 10) + make_trades('B', -50.0, 10, start_day=10)


@pytest.fixture
def scenario_params():
    """Create seeded trades-basis parameters for 1000 trials of 20 draws."""
    return SimulationParams(
        num_simulations=1000,
        simulation_length=20,
        resample_method='trades',
        initial_capital=10000.0,
        random_seed=42,
    )


# ============================================================================
# Scenario
# ============================================================================

class TestEndToEndScenario:
    """Tests for a full run over a mixed pool."""

    def test_mixed_pool(self, mixed_trades, scenario_params):
        """Test statistics and pool size for a mixed pool."""
        result = simulate(mixed_trades, scenario_params)

        expected = (100.0 - 50.0) / 2 * 20 / 10000.0
        assert 0.0 < result.statistics.probability_of_profit < 1.0
        assert result.percentiles.p50[20] == pytest.approx(expected, rel=0.05)
        assert result.actual_resample_pool_size == 20
        assert len(result.simulations) == 1000
        assert result.warnings == []
        assert result.injection_plan is None

    def test_curve_shape(self, mixed_trades, scenario_params):
        """Test curve shape and the zero baseline."""
        result = simulate(mixed_trades, scenario_params)

        assert result.equity_curves.shape == (1000, 21)
        assert np.all(result.equity_curves[:, 0] == 0.0)
        np.testing.assert_array_equal(result.percentiles.steps, np.arange(21))

    def test_trial_metrics_match_curves(self, mixed_trades, scenario_params):
        """Test that trial metrics agree with the trial curve."""
        result = simulate(mixed_trades, scenario_params)
        trial = result.simulations[0]

        assert trial.total_return == trial.equity_curve[-1]
        assert trial.final_value == pytest.approx(10000.0 * (1 + trial.total_return))


# ============================================================================
# Determinism
# ============================================================================

class TestDeterminism:
    """Tests for seeded reproducibility."""

    def test_same_seed_identical(self, mixed_trades, scenario_params):
        """Test that the same seed gives identical curves."""
        first = simulate(mixed_trades, scenario_params)
        second = simulate(mixed_trades, scenario_params)

        assert first.equity_curves.tobytes() == second.equity_curves.tobytes()

    def test_parallel_matches_sequential(self, mixed_trades, scenario_params):
        """Test that worker count does not change the curves."""
        sequential = simulate(mixed_trades, scenario_params, num_workers=1)
        parallel = simulate(mixed_trades, scenario_params, num_workers=4)

        assert sequential.equity_curves.tobytes() == parallel.equity_curves.tobytes()

    def test_different_seeds_differ(self, mixed_trades, scenario_params):
        """Test that different seeds give different curves."""
        first = simulate(mixed_trades, scenario_params)
        scenario_params.random_seed = 43
        second = simulate(mixed_trades, scenario_params)

        assert not np.array_equal(first.equity_curves, second.equity_curves)

    def test_guarantee_mode_deterministic(self, mixed_trades, scenario_params):
        """Test that guarantee mode is reproducible across worker counts."""
        scenario_params = replace(scenario_params, worst_case_enabled=True, worst_case_mode='guarantee')

        first = simulate(mixed_trades, scenario_params, num_workers=1)
        second = simulate(mixed_trades, scenario_params, num_workers=3)

        assert first.equity_curves.tobytes() == second.equity_curves.tobytes()

    def test_trial_rng_depends_only_on_seed_and_index(self):
        """Test that a trial generator depends only on seed and index."""
        a = derive_trial_rng(42, 7).integers(0, 1000, size=5)
        b = derive_trial_rng(42, 7).integers(0, 1000, size=5)
        c = derive_trial_rng(42, 8).integers(0, 1000, size=5)

        np.testing.assert_array_equal(a, b)
        assert not np.array_equal(a, c)

    def test_unseeded_run_records_master_seed(self, mixed_trades):
        """Test that an unseeded run records its master seed."""
        params = SimulationParams(num_simulations=100, simulation_length=5, initial_capital=10000.0)
        result = simulate(mixed_trades, params)

        assert result.master_seed is not None
        assert result.parameters.random_seed is None

    def test_recorded_master_seed_replays_run(self, mixed_trades):
        """Test that the exported masterSeed replays an unseeded run."""
        params = SimulationParams(num_simulations=100, simulation_length=5, initial_capital=10000.0)
        first = simulate(mixed_trades, params)

        replay = simulate(mixed_trades, replace(params, random_seed=first.to_dict()['masterSeed']))

        assert first.equity_curves.tobytes() == replay.equity_curves.tobytes()


# ============================================================================
# Accounting
# ============================================================================

class TestAccounting:
    """Tests for equity accounting under each basis."""

    def test_conservation_under_trades_basis(self):
        """Test that constant P/L sums exactly on the trades basis."""
        trades = make_trades('A', 125.0, 12)
        params = SimulationParams(
            num_simulations=100,
            simulation_length=30,
            initial_capital=10000.0,
            random_seed=1,
        )
        result = simulate(trades, params)

        finals = np.array([t.final_value for t in result.simulations])
        np.testing.assert_allclose(finals, 10000.0 + 125.0 * 30)
        np.testing.assert_allclose(result.equity_curves[:, -1], 125.0 * 30 / 10000.0)

    def test_single_unit_window(self, mixed_trades):
        """Test a recency window of one unit."""
        # last unit of A is +100, last unit of B is -50
        params = SimulationParams(
            num_simulations=100,
            simulation_length=10,
            initial_capital=10000.0,
            resample_window=1,
            random_seed=3,
            strategies=['A'],
        )
        result = simulate(mixed_trades, params)

        assert result.actual_resample_pool_size == 1
        np.testing.assert_allclose(result.equity_curves[:, -1], 0.1)

    def test_percentage_basis_compounds(self):
        """Test that the percentage basis compounds."""
        trades = make_trades('A', 100.0, 10, funds_at_close=10100.0)
        params = SimulationParams(
            num_simulations=100,
            simulation_length=5,
            resample_method='percentage',
            initial_capital=50000.0,
            random_seed=5,
        )
        result = simulate(trades, params)

        np.testing.assert_allclose(result.equity_curves[:, -1], 1.01 ** 5 - 1)
        assert result.statistics.mean_final_value == pytest.approx(50000.0 * 1.01 ** 5)

    def test_daily_basis_pool_counts_days(self):
        """Test that the daily pool holds one unit per day."""
        trades = make_trades('A', 10.0, 10) + make_trades('A', 5.0, 10)
        params = SimulationParams(num_simulations=100, simulation_length=5, resample_method='daily', random_seed=1)
        result = simulate(trades, params)

        assert result.actual_resample_pool_size == 10
        np.testing.assert_allclose(result.equity_curves[:, -1], 15.0 * 5 / params.initial_capital)

    def test_strategy_filter_excludes_other_strategies(self, mixed_trades, scenario_params):
        """Test that filtered-out strategies are never drawn."""
        scenario_params.strategies = ['A']
        result = simulate(mixed_trades, scenario_params)

        np.testing.assert_allclose(result.equity_curves[:, -1], 100.0 * 20 / 10000.0)
        assert result.statistics.probability_of_profit == 1.0


# ============================================================================
# Worst-case injection
# ============================================================================

class TestWorstCaseInjection:
    """Tests for worst-case injection during a run."""

    @pytest.mark.parametrize("length", [1, 10, 500])
    @pytest.mark.parametrize("pct", [1, 20])
    def test_guarantee_budget_accuracy(self, length, pct):
        """Test that every trial holds exactly the guaranteed quota."""
        # winners only, so every synthetic unit is -100 and every ordinary draw +100
        trades = make_trades('A', 100.0, 5) + make_trades('B', 100.0, 5, start_day=5)
        params = SimulationParams(
            num_simulations=100,
            simulation_length=length,
            initial_capital=10000.0,
            random_seed=11,
            worst_case_enabled=True,
            worst_case_percentage=pct,
            worst_case_mode='guarantee',
            worst_case_sizing='absolute',
        )
        result = simulate(trades, params)

        draws = np.diff(result.equity_curves, axis=1) * 10000.0
        synthetic = np.isclose(draws, -100.0).sum(axis=1)
        assert np.all(synthetic == simulation_budget(length, pct))
        assert result.equity_curves.shape[1] == length + 1

    def test_guarantee_slots_are_shuffled(self):
        """Test that guaranteed losses land in varying positions."""
        trades = make_trades('A', 100.0, 10)
        params = SimulationParams(
            num_simulations=200,
            simulation_length=10,
            initial_capital=10000.0,
            random_seed=2,
            worst_case_enabled=True,
            worst_case_percentage=10,
            worst_case_mode='guarantee',
            worst_case_sizing='absolute',
        )
        result = simulate(trades, params)

        draws = np.diff(result.equity_curves, axis=1) * 10000.0
        positions = np.argmax(np.isclose(draws, -100.0), axis=1)
        assert len(set(positions.tolist())) > 1

    @pytest.mark.parametrize("mode", ['pool', 'guarantee'])
    def test_horizon_invariant(self, mixed_trades, scenario_params, mode):
        """Test that injection never changes the trial length."""
        scenario_params = replace(scenario_params, worst_case_enabled=True, worst_case_mode=mode)
        result = simulate(mixed_trades, scenario_params)

        assert all(len(t.equity_curve) == 21 for t in result.simulations)

    def test_pool_mode_reports_historical_pool_size(self, mixed_trades, scenario_params):
        """Test that pool mode reports the historical pool size."""
        scenario_params = replace(scenario_params, worst_case_enabled=True, worst_case_mode='pool')
        result = simulate(mixed_trades, scenario_params)

        assert isinstance(result.injection_plan, PoolAugmentation)
        assert result.injection_plan.total == 1  # ceil(20 * 5%)
        assert result.actual_resample_pool_size == 20

    def test_guarantee_plan_on_result(self, mixed_trades, scenario_params):
        """Test that the guarantee plan is kept on the result."""
        scenario_params = replace(scenario_params, worst_case_enabled=True, worst_case_mode='guarantee')
        result = simulate(mixed_trades, scenario_params)

        assert isinstance(result.injection_plan, GuaranteedQuota)


# ============================================================================
# Errors and warnings
# ============================================================================

class TestErrors:
    """Tests for run errors and warnings."""

    def test_fewer_than_ten_trades(self):
        """Test that fewer than ten trades raise."""
        params = SimulationParams(num_simulations=100, simulation_length=5)
        with pytest.raises(DataInsufficiencyError, match="need at least 10"):
            simulate(make_trades('A', 10.0, 9), params)

    def test_filter_matching_zero_trades(self, mixed_trades, scenario_params):
        """Test that a filter matching nothing raises."""
        scenario_params.strategies = ['Nope']
        with pytest.raises(ConfigurationError, match="Nope"):
            simulate(mixed_trades, scenario_params)

    def test_filtered_set_below_minimum(self, scenario_params):
        """Test that a filtered set under ten trades raises."""
        trades = make_trades('A', 10.0, 20) + make_trades('B', 10.0, 3)
        scenario_params.strategies = ['B']
        with pytest.raises(DataInsufficiencyError):
            simulate(trades, scenario_params)

    @pytest.mark.parametrize("field,value", [
        ('simulation_length', 0),
        ('initial_capital', 0.0),
        ('initial_capital', -5.0),
        ('num_simulations', 99),
    ])
    def test_invalid_parameters(self, mixed_trades, scenario_params, field, value):
        """Test that invalid parameters raise ConfigurationError."""
        setattr(scenario_params, field, value)
        with pytest.raises(ConfigurationError):
            simulate(mixed_trades, scenario_params)

    def test_percentage_basis_without_funds(self, mixed_trades, scenario_params):
        """Test that percentage basis rejects a log without funds_at_close."""
        scenario_params = replace(scenario_params, resample_method='percentage')

        with pytest.raises(ConfigurationError, match='Funds at Close'):
            simulate(mixed_trades, scenario_params)

    def test_warnings_returned_with_result(self, mixed_trades):
        """Test that warnings come back on the result."""
        trades = [
            HistoricalTrade(t.strategy, t.date_opened, t.pl, funds_at_close=10000.0 + t.pl)
            for t in mixed_trades
        ]
        params = SimulationParams(
            num_simulations=100,
            simulation_length=5,
            resample_method='percentage',
            strategies=['A'],
            random_seed=1,
        )
        result = simulate(trades, params)

        assert [w.code for w in result.warnings] == ['capital_basis_inferred']


class TestCancellation:
    """Tests for cooperative cancellation."""

    def test_cancelled_before_start(self, mixed_trades, scenario_params):
        """Test that a cancelled token stops the run."""
        token = CancellationToken()
        token.cancel()

        with pytest.raises(SimulationCancelledError):
            simulate(mixed_trades, scenario_params, cancellation_token=token)

    def test_checked_between_trials(self):
        """Test that the token is checked between trials."""
        engine = TrialEngine(np.array([1.0, 2.0]), simulation_length=3, initial_capital=100.0, compounding=False)
        token = CancellationToken()

        curves = engine.run_range(0, 0, 5, token)
        assert curves.shape == (5, 4)

        token.cancel()
        assert token.cancelled
        with pytest.raises(SimulationCancelledError):
            engine.run_range(0, 0, 5, token)

    def test_simulator_class(self, mixed_trades, scenario_params):
        """Test running through MonteCarloSimulator."""
        simulator = MonteCarloSimulator(scenario_params, num_workers=2)
        result = simulator.run(mixed_trades)
        assert len(result.simulations) == scenario_params.num_simulations


# ============================================================================
# Serialization
# ============================================================================

class TestSerialization:
    """Tests for MonteCarloResult serialization."""

    def test_to_dict_is_json_ready(self, mixed_trades, scenario_params):
        """Test that to_dict output is JSON serializable."""
        scenario_params.worst_case_enabled = True
        result = simulate(mixed_trades, scenario_params)

        data = result.to_dict()
        assert 'simulations' not in data
        assert data['actualResamplePoolSize'] == 20
        assert data['parameters']['randomSeed'] == 42
        assert data['masterSeed'] == 42
        assert data['parameters']['resampleMethod'] == 'trades'
        assert len(data['percentiles']['p50']) == 21
        json.dumps(data)

        full = result.to_dict(include_simulations=True)
        assert len(full['simulations']) == 1000
        assert set(full['simulations'][0]) == {
            'equityCurve', 'finalValue', 'totalReturn', 'annualizedReturn', 'maxDrawdown', 'sharpeRatio'
        }
        json.dumps(full)

    def test_trials_own_their_curves(self, mixed_trades, scenario_params):
        """Test that each trial owns its equity curve buffer."""
        result = simulate(mixed_trades, scenario_params)
        second = result.simulations[1].equity_curve.copy()

        result.simulations[0].equity_curve[:] = 123.0

        assert all(trial.equity_curve.base is None for trial in result.simulations)
        np.testing.assert_array_equal(result.simulations[1].equity_curve, second)

    def test_parameters_are_a_snapshot(self, mixed_trades, scenario_params):
        """Test that the result keeps a snapshot of the parameters."""
        result = simulate(mixed_trades, scenario_params)
        scenario_params.num_simulations = 5000

        assert result.parameters.num_simulations == 1000
