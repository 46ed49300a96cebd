"""Tests for the pheromone registry and policy loading."""

import math
import os
import textwrap

import pytest

from driftguard.core.registry import PheromoneType
from driftguard.errors import PolicyError
from driftguard.policy import (
    KindPolicy,
    PheromoneDecayConfig,
    PolicyConfig,
    SignalPolicy,
    ThresholdConfig,
    load_policy_config,
)


class TestPheromoneType:
    def test_declaration_order(self):
        assert [kind.label for kind in PheromoneType] == [
            "Price Freshness",
            "Rebalance Opportunity",
            "Execution Permit",
            "Trade Executed",
        ]

    def test_keys_are_stable(self):
        assert PheromoneType.PRICE_FRESHNESS.key == "pheromone:price_freshness"
        assert PheromoneType.REBALANCE_OPPORTUNITY.key == "pheromone:rebalance_opportunity"
        assert PheromoneType.EXECUTION_PERMIT.key == "pheromone:execution_permit"
        assert PheromoneType.TRADE_EXECUTED.key == "pheromone:trade_executed"

    def test_keys_are_unique(self):
        keys = [kind.key for kind in PheromoneType]
        assert len(keys) == len(set(keys))

    def test_decay_and_threshold_come_from_policy(self, policy):
        kind = PheromoneType.EXECUTION_PERMIT
        assert kind.decay_rate(policy) == 0.5
        assert kind.threshold(policy) == 0.5

    def test_retuned_policy_changes_values(self):
        policy = PolicyConfig(
            pheromones=PheromoneDecayConfig(price_freshness_decay=math.log(2)),
            thresholds=ThresholdConfig(price_freshness=0.9),
        ).resolve()
        assert PheromoneType.PRICE_FRESHNESS.decay_rate(policy) == pytest.approx(math.log(2))
        assert PheromoneType.PRICE_FRESHNESS.threshold(policy) == 0.9
        # Other types keep their defaults
        assert PheromoneType.TRADE_EXECUTED.decay_rate(policy) == 0.1


class TestPolicyResolution:
    def test_defaults(self, policy):
        assert policy.for_kind(PheromoneType.PRICE_FRESHNESS) == KindPolicy(0.3, 0.7)
        assert policy.for_kind(PheromoneType.REBALANCE_OPPORTUNITY) == KindPolicy(0.2, 0.6)
        assert policy.for_kind(PheromoneType.EXECUTION_PERMIT) == KindPolicy(0.5, 0.5)
        assert policy.for_kind(PheromoneType.TRADE_EXECUTED) == KindPolicy(0.1, 0.3)

    @pytest.mark.parametrize("decay_rate", [0.0, -0.3, math.nan, math.inf, -math.inf])
    def test_non_positive_or_non_finite_decay_rejected(self, decay_rate):
        config = PolicyConfig(
            pheromones=PheromoneDecayConfig(execution_permit_decay=decay_rate)
        )
        with pytest.raises(PolicyError, match="positive finite") as exc_info:
            config.resolve()
        assert exc_info.value.kind == "execution_permit"

    def test_missing_decay_rejected(self):
        config = PolicyConfig(pheromones=PheromoneDecayConfig(trade_executed_decay=None))
        with pytest.raises(PolicyError, match="No decay rate"):
            config.resolve()

    def test_missing_threshold_rejected(self):
        config = PolicyConfig(thresholds=ThresholdConfig(price_freshness=None))
        with pytest.raises(PolicyError, match="No threshold"):
            config.resolve()

    @pytest.mark.parametrize("threshold", [-0.1, 1.5, math.nan, math.inf])
    def test_out_of_range_threshold_rejected(self, threshold):
        config = PolicyConfig(thresholds=ThresholdConfig(rebalance_opportunity=threshold))
        with pytest.raises(PolicyError, match="within"):
            config.resolve()

    def test_incomplete_table_rejected(self):
        with pytest.raises(PolicyError, match="No policy for"):
            SignalPolicy({PheromoneType.PRICE_FRESHNESS: KindPolicy(0.3, 0.7)})

    def test_table_is_read_only(self, policy):
        with pytest.raises(TypeError):
            policy._table[PheromoneType.PRICE_FRESHNESS] = KindPolicy(1.0, 0.1)


class TestLoadPolicyConfig:
    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_policy_config(tmp_path / "missing.yaml")
        assert config == PolicyConfig()

    def test_loads_yaml(self, tmp_path):
        path = tmp_path / "driftguard.yaml"
        path.write_text(textwrap.dedent("""
            pheromones:
              price_freshness_decay: 0.693
            thresholds:
              price_freshness: 0.9
            portfolio:
              default_stocks_pct: 70
              default_bonds_pct: 30
              initial_balance: 50000
        """))

        config = load_policy_config(path)
        policy = config.resolve()

        assert policy.for_kind(PheromoneType.PRICE_FRESHNESS) == KindPolicy(0.693, 0.9)
        assert policy.for_kind(PheromoneType.TRADE_EXECUTED) == KindPolicy(0.1, 0.3)
        assert config.portfolio.default_stocks_pct == 70
        assert config.portfolio.initial_balance == 50000

    def test_explicit_null_fails_at_resolve(self, tmp_path):
        path = tmp_path / "driftguard.yaml"
        path.write_text("pheromones:\n  execution_permit_decay: null\n")

        config = load_policy_config(path)
        with pytest.raises(PolicyError):
            config.resolve()

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "driftguard.yaml"
        path.write_text("")
        assert load_policy_config(path) == PolicyConfig()

    @pytest.mark.parametrize(
        "content",
        [
            "pheromones: [1, 2\n",
            "pheromones:\n  price_freshness_decay: fast\n",
            "- just\n- a list\n",
            "portfolio:\n  default_stocks_pct: 80\n  default_bonds_pct: 30\n",
        ],
    )
    def test_invalid_file_raises_policy_error(self, tmp_path, content):
        path = tmp_path / "driftguard.yaml"
        path.write_text(content)
        with pytest.raises(PolicyError, match="Invalid policy file"):
            load_policy_config(path)

    @pytest.mark.parametrize("value", [".nan", ".inf", "-.inf"])
    def test_non_finite_decay_in_file_fails_at_resolve(self, tmp_path, value):
        path = tmp_path / "driftguard.yaml"
        path.write_text(f"pheromones:\n  price_freshness_decay: {value}\n")

        config = load_policy_config(path)
        with pytest.raises(PolicyError, match="positive finite") as exc_info:
            config.resolve()
        assert exc_info.value.kind == "price_freshness"

    def test_non_finite_threshold_in_file_fails_at_resolve(self, tmp_path):
        path = tmp_path / "driftguard.yaml"
        path.write_text("thresholds:\n  trade_executed: .nan\n")

        with pytest.raises(PolicyError, match="within"):
            load_policy_config(path).resolve()

    def test_sibling_env_file_is_not_loaded(self, tmp_path, monkeypatch):
        monkeypatch.delenv("DRIFTGUARD_MARKER", raising=False)
        (tmp_path / ".env").write_text("DRIFTGUARD_MARKER=1\n")
        path = tmp_path / "driftguard.yaml"
        path.write_text("thresholds:\n  price_freshness: 0.8\n")

        config = load_policy_config(path)

        assert config.thresholds.price_freshness == 0.8
        assert "DRIFTGUARD_MARKER" not in os.environ
