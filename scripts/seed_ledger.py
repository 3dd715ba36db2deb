#!/usr/bin/env python3
"""Simulate a daily collection route and export the resulting ledger.

This script runs DailyCollectionScenario against an in-memory ledger and
then writes the outcome to:
- JSON files: one snapshot file per entity plus an events.jsonl log
- PostgreSQL (optional): the same snapshot, loaded into the ledger schema
- Kafka (optional): notification events as they happen, plus snapshots
  on ``ledger.<entity>`` topics
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loan_ledger.config import LedgerConfig
from loan_ledger.logging import setup_logging
from loan_ledger.scenarios import DailyCollectionScenario
from loan_ledger.sinks import JsonFileSink, KafkaSink
from loan_ledger.store.postgres import PostgresLedgerStore

logger = logging.getLogger(__name__)


def load_to_postgres(scenario: DailyCollectionScenario, postgres_url: str) -> None:
    """Copy the scenario's ledger into PostgreSQL in one transaction."""
    store = PostgresLedgerStore(postgres_url)
    store.create_schema()
    snapshot = scenario.store.snapshot()

    start = time.perf_counter()
    with store.transaction() as uow:
        for borrower in snapshot["borrowers"]:
            uow.add_borrower(borrower)
        for loan in snapshot["loans"]:
            uow.add_loan(loan)
        uow.add_installments(snapshot["installments"])
        for payment in snapshot["payments"]:
            uow.add_payment(payment)
        uow.add_rollover_credits(snapshot["rollover_credits"])
    logger.info(
        "Loaded %d records to PostgreSQL in %.2fs",
        sum(len(records) for records in snapshot.values()),
        time.perf_counter() - start,
    )


def main() -> None:
    """Main entry point."""
    config = LedgerConfig.from_env()

    parser = argparse.ArgumentParser(
        description="Simulate daily loan collection and export the ledger"
    )
    parser.add_argument(
        "--borrowers",
        type=int,
        default=20,
        help="Number of borrowers on the route (default: 20)",
    )
    parser.add_argument(
        "--days",
        type=int,
        default=45,
        help="Number of collection days to simulate (default: 45)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=config.seed if config.seed is not None else 42,
        help="Random seed for reproducibility (default: SEED or 42)",
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=str(config.output.json_output_dir),
        help="Directory for JSON snapshots and the event log (default: OUTPUT_DIR or output)",
    )
    parser.add_argument(
        "--pretty",
        action="store_true",
        default=config.output.pretty_json,
        help="Pretty-print JSON snapshot files",
    )
    parser.add_argument(
        "--postgres-url",
        type=str,
        default=None,
        help="Also load the ledger into this PostgreSQL database",
    )
    parser.add_argument(
        "--kafka-bootstrap",
        type=str,
        default=None,
        help="Also publish events and snapshots to these Kafka bootstrap servers",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=config.log_level,
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["standard", "json"],
        default="standard",
        help="Log format (default: standard)",
    )
    args = parser.parse_args()

    setup_logging(args.log_level, args.log_format)

    json_sink = JsonFileSink(args.output_dir, pretty=args.pretty)
    sinks: list = [json_sink]
    if args.kafka_bootstrap:
        sinks.append(KafkaSink(replace(config.kafka, bootstrap_servers=args.kafka_bootstrap)))

    logger.info("=" * 60)
    logger.info("Loan Ledger - Daily Collection Simulation")
    logger.info("=" * 60)
    logger.info("Borrowers: %d", args.borrowers)
    logger.info("Days: %d", args.days)
    logger.info("Seed: %d", args.seed)

    start = time.perf_counter()
    scenario = DailyCollectionScenario(
        num_borrowers=args.borrowers,
        days=args.days,
        seed=args.seed,
        config=config,
        sinks=sinks,
    )
    scenario.generate()
    logger.info("Simulation finished in %.2fs", time.perf_counter() - start)

    counts = scenario.export(sinks)
    for entity_type, count in counts.items():
        logger.info("  %s: %d", entity_type, count)

    if args.postgres_url:
        load_to_postgres(scenario, args.postgres_url)

    summary = scenario.get_summary()
    logger.info("Activity: %s", summary["activity"])
    logger.info("Active loans: %d", summary["active_loans"])
    logger.info("Total fund balance: %s", summary["total_fund_balance"])
    if summary["notification_failures"]:
        logger.warning("Notification failures: %d", summary["notification_failures"])

    for sink in sinks:
        sink.close()


if __name__ == "__main__":
    main()
