"""
Unified configuration management.

This module provides a centralized way to load, validate, and access
configuration for the analytics engine. It supports:
- YAML file loading
- Environment variable overrides
- Type validation via dataclasses
- Default values from constants

Configuration Hierarchy (highest to lowest priority):
1. Environment variables (TRADEBLOCKS_*)
2. User-provided config file
3. Default values from constants.py

Example usage:
    # Load config with environment overrides
    config = load_config("config/analytics.yaml")

    # Access typed config sections
    print(config.stats.risk_free_rate)
    print(config.monte_carlo.num_simulations)
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from src.lib.constants import (
    # Stats defaults
    DEFAULT_RISK_FREE_RATE,
    DEFAULT_ANNUALIZATION_FACTOR,
    DEFAULT_CONFIDENCE_LEVEL,
    DEFAULT_DRAWDOWN_THRESHOLD,
    # Correlation defaults
    CORRELATION_METHODS,
    CORRELATION_ALIGNMENTS,
    DEFAULT_CORRELATION_METHOD,
    DEFAULT_CORRELATION_ALIGNMENT,
    DEFAULT_MIN_CORRELATION_OBSERVATIONS,
    # Monte Carlo defaults
    DEFAULT_NUM_SIMULATIONS,
    DEFAULT_SIMULATION_LENGTH,
    DEFAULT_TRADES_PER_YEAR,
    DEFAULT_MC_INITIAL_CAPITAL,
    DEFAULT_PROGRESS_INTERVAL,
    DEFAULT_SAMPLE_BASIS,
    SAMPLE_BASES,
    # Kelly defaults
    DEFAULT_KELLY_MULTIPLIER_PCT,
    # Output defaults
    DEFAULT_OUTPUT_DIR,
    DEFAULT_LOG_LEVEL,
    ENV_PREFIX,
)


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


# =============================================================================
# Configuration Dataclasses
# =============================================================================

@dataclass
class StatsConfig:
    """Configuration for portfolio statistics."""
    # Annual risk-free rate in percent (2.0 = 2%)
    risk_free_rate: float = DEFAULT_RISK_FREE_RATE
    # Periods per year used to annualize Sharpe/Sortino
    annualization_factor: float = DEFAULT_ANNUALIZATION_FACTOR
    # Drawdown alert threshold (fraction)
    drawdown_threshold: float = DEFAULT_DRAWDOWN_THRESHOLD
    # Explicit starting capital (None = infer from first trade)
    starting_capital: Optional[float] = None


@dataclass
class CorrelationConfig:
    """Configuration for the strategy correlation matrix."""
    # 'pearson', 'spearman' or 'kendall'
    method: str = DEFAULT_CORRELATION_METHOD
    # 'union' (zero-fill days a strategy did not trade) or 'shared'
    alignment: str = DEFAULT_CORRELATION_ALIGNMENT
    # Strategies with fewer observations are excluded
    min_observations: int = DEFAULT_MIN_CORRELATION_OBSERVATIONS


@dataclass
class MonteCarloConfig:
    """
    Configuration for Monte Carlo simulation.

    Attributes:
        num_simulations: Number of bootstrap paths
        simulation_length: Number of trades drawn per path
        trades_per_year: Trade frequency used to annualize returns
        seed: Random seed for reproducibility (optional)
        sample_basis: 'return' (compound per-trade returns) or 'pl' (add dollar P/L)
        initial_capital: Base capital for the 'pl' basis
        confidence_level: Confidence level of the headline value at risk (0-1)
        progress_interval: Report progress every N completed runs
        store_trajectories: Keep every simulated path on the result (memory intensive)
    """
    num_simulations: int = DEFAULT_NUM_SIMULATIONS
    simulation_length: int = DEFAULT_SIMULATION_LENGTH
    trades_per_year: float = DEFAULT_TRADES_PER_YEAR
    seed: Optional[int] = None
    sample_basis: str = DEFAULT_SAMPLE_BASIS
    initial_capital: float = DEFAULT_MC_INITIAL_CAPITAL
    confidence_level: float = DEFAULT_CONFIDENCE_LEVEL
    progress_interval: int = DEFAULT_PROGRESS_INTERVAL
    store_trajectories: bool = False

    def validation_errors(self) -> list[str]:
        """List every invalid simulation parameter (empty if valid)."""
        errors = []
        if self.num_simulations <= 0:
            errors.append(f"num_simulations ({self.num_simulations}) must be > 0")
        if self.simulation_length <= 0:
            errors.append(f"simulation_length ({self.simulation_length}) must be > 0")
        if self.trades_per_year <= 0:
            errors.append(f"trades_per_year ({self.trades_per_year}) must be > 0")
        if self.progress_interval <= 0:
            errors.append(f"progress_interval ({self.progress_interval}) must be > 0")
        if not 0 < self.confidence_level < 1:
            errors.append(
                f"confidence_level ({self.confidence_level}) must be between 0 and 1"
            )
        if self.sample_basis not in SAMPLE_BASES:
            errors.append(
                f"sample_basis ({self.sample_basis!r}) must be one of {list(SAMPLE_BASES)}"
            )
        elif self.sample_basis == "pl" and self.initial_capital <= 0:
            errors.append(
                f"initial_capital ({self.initial_capital}) must be > 0 for the 'pl' basis"
            )

        return errors

    def validate(self) -> None:
        """
        Reject invalid simulation parameters before any work starts.

        Raises:
            ConfigValidationError: Listing every invalid parameter
        """
        errors = self.validation_errors()
        if errors:
            raise ConfigValidationError("Invalid Monte Carlo configuration:\n" +
                                        "\n".join(f"  - {e}" for e in errors))


@dataclass
class KellyConfig:
    """Configuration for Kelly position sizing."""
    # Multiplier applied to full Kelly when a strategy has no explicit setting
    default_multiplier_pct: float = DEFAULT_KELLY_MULTIPLIER_PCT
    # Per-strategy multipliers (percent of full Kelly)
    strategy_multipliers: Dict[str, float] = field(default_factory=dict)

    def multiplier_for(self, strategy: str) -> float:
        """Kelly multiplier (percent) for a strategy."""
        return float(self.strategy_multipliers.get(strategy, self.default_multiplier_pct))


@dataclass
class OutputConfig:
    """Configuration for output and logging."""
    output_dir: str = DEFAULT_OUTPUT_DIR
    log_level: str = DEFAULT_LOG_LEVEL
    verbose: bool = False


@dataclass
class AnalyticsConfig:
    """Main configuration container."""
    stats: StatsConfig = field(default_factory=StatsConfig)
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    monte_carlo: MonteCarloConfig = field(default_factory=MonteCarloConfig)
    kelly: KellyConfig = field(default_factory=KellyConfig)
    output: OutputConfig = field(default_factory=OutputConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(
    config_path: Optional[str] = None,
    override_env: bool = True
) -> AnalyticsConfig:
    """
    Load configuration from YAML file with optional environment overrides.

    Args:
        config_path: Path to YAML config file (optional)
        override_env: If True, apply environment variable overrides

    Returns:
        AnalyticsConfig instance

    Example:
        config = load_config("config/analytics.yaml")
        print(config.stats.risk_free_rate)  # 2.0
    """
    config = AnalyticsConfig()

    if config_path:
        config = _load_from_yaml(config_path, config)

    if override_env:
        config = _apply_env_overrides(config)

    return config


def _load_from_yaml(config_path: str, base_config: AnalyticsConfig) -> AnalyticsConfig:
    """Load configuration from YAML file."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        yaml_data = yaml.safe_load(f)

    if yaml_data is None:
        return base_config

    if "stats" in yaml_data:
        base_config.stats = _update_dataclass(base_config.stats, yaml_data["stats"])

    if "correlation" in yaml_data:
        base_config.correlation = _update_dataclass(
            base_config.correlation, yaml_data["correlation"]
        )

    if "monte_carlo" in yaml_data:
        base_config.monte_carlo = _update_dataclass(
            base_config.monte_carlo, yaml_data["monte_carlo"]
        )

    if "kelly" in yaml_data:
        base_config.kelly = _update_dataclass(base_config.kelly, yaml_data["kelly"])

    if "output" in yaml_data:
        base_config.output = _update_dataclass(base_config.output, yaml_data["output"])

    # Top-level shortcut
    if "seed" in yaml_data:
        base_config.monte_carlo.seed = yaml_data["seed"]

    return base_config


def _update_dataclass(instance: Any, data: dict) -> Any:
    """Update dataclass fields from dictionary."""
    if not data:
        return instance

    field_names = {f.name for f in instance.__dataclass_fields__.values()}

    for key, value in data.items():
        # Accept 'num-simulations' and 'num.simulations' spellings
        normalized_key = key.replace(".", "_").replace("-", "_")

        if normalized_key in field_names:
            setattr(instance, normalized_key, value)
        elif key in field_names:
            setattr(instance, key, value)

    return instance


def _apply_env_overrides(config: AnalyticsConfig) -> AnalyticsConfig:
    """Apply environment variable overrides to config."""

    if env_val := os.getenv(f"{ENV_PREFIX}RISK_FREE_RATE"):
        config.stats.risk_free_rate = float(env_val)

    if env_val := os.getenv(f"{ENV_PREFIX}ANNUALIZATION_FACTOR"):
        config.stats.annualization_factor = float(env_val)

    if env_val := os.getenv(f"{ENV_PREFIX}STARTING_CAPITAL"):
        config.stats.starting_capital = float(env_val)

    if env_val := os.getenv(f"{ENV_PREFIX}CORRELATION_METHOD"):
        config.correlation.method = env_val.lower()

    if env_val := os.getenv(f"{ENV_PREFIX}MC_SIMULATIONS"):
        config.monte_carlo.num_simulations = int(env_val)

    if env_val := os.getenv(f"{ENV_PREFIX}MC_SEED"):
        config.monte_carlo.seed = int(env_val)

    if env_val := os.getenv(f"{ENV_PREFIX}OUTPUT_DIR"):
        config.output.output_dir = env_val

    if env_val := os.getenv(f"{ENV_PREFIX}LOG_LEVEL"):
        config.output.log_level = env_val.upper()

    return config


def load_config_from_env() -> AnalyticsConfig:
    """
    Load configuration purely from environment variables.

    Returns:
        AnalyticsConfig instance
    """
    return load_config(config_path=None, override_env=True)


# =============================================================================
# Configuration Validation
# =============================================================================

def validate_config(config: AnalyticsConfig) -> list[str]:
    """
    Validate configuration values.

    Args:
        config: AnalyticsConfig to validate

    Returns:
        List of validation warnings (empty if valid)

    Raises:
        ConfigValidationError: If critical validation fails
    """
    warnings = []
    errors = []

    # Stats validation
    if config.stats.annualization_factor <= 0:
        errors.append(
            f"annualization_factor ({config.stats.annualization_factor}) must be > 0"
        )

    if config.stats.risk_free_rate < 0:
        warnings.append(
            f"risk_free_rate ({config.stats.risk_free_rate}) is negative"
        )

    if config.stats.risk_free_rate > 20:
        warnings.append(
            f"risk_free_rate ({config.stats.risk_free_rate}) looks like a fraction "
            f"scaled twice - the value is an annual percent"
        )

    if not 0 <= config.stats.drawdown_threshold <= 1:
        errors.append(
            f"drawdown_threshold ({config.stats.drawdown_threshold}) must be between 0 and 1"
        )

    if config.stats.starting_capital is not None and config.stats.starting_capital <= 0:
        errors.append(
            f"starting_capital ({config.stats.starting_capital}) must be > 0 when set"
        )

    # Correlation validation
    if config.correlation.method not in CORRELATION_METHODS:
        errors.append(
            f"correlation method ({config.correlation.method!r}) must be one of "
            f"{list(CORRELATION_METHODS)}"
        )

    if config.correlation.alignment not in CORRELATION_ALIGNMENTS:
        errors.append(
            f"correlation alignment ({config.correlation.alignment!r}) must be one of "
            f"{list(CORRELATION_ALIGNMENTS)}"
        )

    if config.correlation.min_observations < 2:
        errors.append(
            f"min_observations ({config.correlation.min_observations}) must be >= 2"
        )

    # Monte Carlo validation
    errors.extend(config.monte_carlo.validation_errors())

    if config.monte_carlo.num_simulations > 0 and config.monte_carlo.num_simulations < 100:
        warnings.append(
            f"num_simulations ({config.monte_carlo.num_simulations}) below 100 gives "
            f"noisy percentile bands"
        )

    # Kelly validation
    if config.kelly.default_multiplier_pct < 0:
        errors.append("default_multiplier_pct cannot be negative")

    for name, pct in config.kelly.strategy_multipliers.items():
        if pct < 0:
            errors.append(f"Kelly multiplier for {name!r} cannot be negative")

    if config.kelly.default_multiplier_pct > 100:
        warnings.append(
            f"default_multiplier_pct ({config.kelly.default_multiplier_pct}) exceeds "
            f"full Kelly - expect large drawdowns"
        )

    if errors:
        raise ConfigValidationError("Configuration validation failed:\n" +
                                    "\n".join(f"  - {e}" for e in errors))

    return warnings


# =============================================================================
# Configuration Export
# =============================================================================

def config_to_dict(config: AnalyticsConfig) -> dict:
    """
    Convert AnalyticsConfig to dictionary for serialization.

    Args:
        config: Configuration to convert

    Returns:
        Dictionary representation (YAML-safe)
    """
    from dataclasses import asdict
    return asdict(config)


def save_config(config: AnalyticsConfig, path: str) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: Configuration to save
        path: Output file path
    """
    data = config_to_dict(config)

    with open(path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)
