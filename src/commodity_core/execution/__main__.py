"""Allow running the queue worker as: python -m commodity_core.execution [--config path] [--retry ITEM_ID]."""

import argparse

from commodity_core.execution.worker import main

parser = argparse.ArgumentParser(description="Execution queue worker")
parser.add_argument("--config", default=None, help="Path to config.yaml")
parser.add_argument("--retry", type=int, default=None, metavar="ITEM_ID", help="Re-enqueue one FAILED item and exit")
args = parser.parse_args()
main(config_path=args.config, retry_id=args.retry)
