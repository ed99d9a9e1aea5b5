"""Allow running the pipeline as: python -m commodity_core.pipeline [--config path]."""

import argparse

from commodity_core.pipeline.runner import main

parser = argparse.ArgumentParser(description="Signal pipeline")
parser.add_argument("--config", default=None, help="Path to config.yaml")
args = parser.parse_args()
main(config_path=args.config)
