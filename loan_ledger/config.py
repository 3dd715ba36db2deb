"""Configuration for loan-ledger.

Every section can be built from environment variables; unset variables
fall back to the dataclass defaults.
"""

import os
from dataclasses import dataclass, field
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from loan_ledger.exceptions import ConfigurationError


def _env_str(name: str, default: str) -> str:
    return os.getenv(name) or default


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_decimal(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise ConfigurationError(f"{name} must be a decimal, got {raw!r}") from exc


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if not raw:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class KafkaConfig:
    """Producer settings for the notifications topic."""

    bootstrap_servers: str = "localhost:9092"
    topic: str = "ledger.notifications"
    acks: str = "all"
    linger_ms: int = 5
    batch_size: int = 16384
    compression: str = "snappy"
    retries: int = 3

    def producer_settings(self) -> dict[str, Any]:
        """Settings in the dotted form confluent-kafka expects."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "linger.ms": self.linger_ms,
            "batch.size": self.batch_size,
            "compression.type": self.compression,
            "retries": self.retries,
        }

    @classmethod
    def from_env(cls) -> "KafkaConfig":
        return cls(
            bootstrap_servers=_env_str("KAFKA_BOOTSTRAP_SERVERS", cls.bootstrap_servers),
            topic=_env_str("KAFKA_TOPIC", cls.topic),
            acks=_env_str("KAFKA_ACKS", cls.acks),
        )


@dataclass
class PostgresConfig:
    """Where the durable ledger lives."""

    host: str = "localhost"
    port: int = 5432
    database: str = "loanledger"
    user: str = "postgres"
    password: str = "postgres"

    @property
    def url(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"

    @classmethod
    def from_env(cls) -> "PostgresConfig":
        return cls(
            host=_env_str("POSTGRES_HOST", cls.host),
            port=_env_int("POSTGRES_PORT", cls.port),
            database=_env_str("POSTGRES_DB", cls.database),
            user=_env_str("POSTGRES_USER", cls.user),
            password=_env_str("POSTGRES_PASSWORD", cls.password),
        )


@dataclass
class MoneyConfig:
    """Fixed-point rules for monetary amounts.

    ``currency_quantum`` is the smallest unit of the lending currency
    (guaraníes have no minor unit). ``fund_quantum`` is finer so that the
    margin share of many small collections does not drift.
    """

    currency_quantum: Decimal = Decimal("1")
    fund_quantum: Decimal = Decimal("0.000001")
    rounding: str = ROUND_HALF_EVEN

    def __post_init__(self) -> None:
        for name in ("currency_quantum", "fund_quantum"):
            value = getattr(self, name)
            if not isinstance(value, Decimal) or not value.is_finite() or value <= 0:
                raise ConfigurationError(f"{name} must be a positive decimal, got {value!r}")

    @classmethod
    def from_env(cls) -> "MoneyConfig":
        return cls(
            currency_quantum=_env_decimal("CURRENCY_QUANTUM", cls.currency_quantum),
            fund_quantum=_env_decimal("FUND_QUANTUM", cls.fund_quantum),
        )


@dataclass
class OriginationConfig:
    """Defaults used when quoting a flat-rate loan."""

    default_interest_percent: Decimal = Decimal("20")
    default_term_days: int = 30

    @classmethod
    def from_env(cls) -> "OriginationConfig":
        return cls(
            default_interest_percent=_env_decimal("DEFAULT_INTEREST_PERCENT", cls.default_interest_percent),
            default_term_days=_env_int("DEFAULT_TERM_DAYS", cls.default_term_days),
        )


@dataclass
class RenewalConfig:
    """Eligibility thresholds for loan consolidation."""

    principal_ratio: Decimal = Decimal("0.90")
    max_remaining_installments: int = 1

    @classmethod
    def from_env(cls) -> "RenewalConfig":
        return cls(
            principal_ratio=_env_decimal("RENEWAL_PRINCIPAL_RATIO", cls.principal_ratio),
            max_remaining_installments=_env_int("RENEWAL_MAX_REMAINING", cls.max_remaining_installments),
        )


@dataclass
class OutputConfig:
    """Where snapshot exports are written."""

    json_output_dir: Path = field(default_factory=lambda: Path("output"))
    pretty_json: bool = False

    @classmethod
    def from_env(cls) -> "OutputConfig":
        return cls(
            json_output_dir=Path(_env_str("OUTPUT_DIR", "output")),
            pretty_json=_env_flag("PRETTY_JSON", False),
        )


@dataclass
class LedgerConfig:
    """Main configuration for loan-ledger."""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    money: MoneyConfig = field(default_factory=MoneyConfig)
    origination: OriginationConfig = field(default_factory=OriginationConfig)
    renewal: RenewalConfig = field(default_factory=RenewalConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    seed: int | None = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Build every section from the environment.

        Raises
        ------
        ConfigurationError
            If a numeric variable cannot be parsed or a money quantum is
            not positive.
        """
        return cls(
            kafka=KafkaConfig.from_env(),
            postgres=PostgresConfig.from_env(),
            money=MoneyConfig.from_env(),
            origination=OriginationConfig.from_env(),
            renewal=RenewalConfig.from_env(),
            output=OutputConfig.from_env(),
            seed=_env_int("SEED", None),
            log_level=_env_str("LOG_LEVEL", "INFO"),
        )
