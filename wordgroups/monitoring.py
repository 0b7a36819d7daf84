"""
Monitoring module for the puzzle service.
Handles logging setup and optional CloudWatch metrics.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from . import config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """Configure the root logger with a stream handler and a file handler."""
    level_name = (level or config.log_level()).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    logs_dir = Path(log_dir or config.log_dir())
    logs_dir.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(logs_dir / 'game.log'),
            logging.StreamHandler(),
        ],
        force=True,
    )
    logging.getLogger('wordgroups').setLevel(log_level)


class GameMonitor:
    def __init__(self, environment: Optional[str] = None, enabled: Optional[bool] = None,
                 cloudwatch=None):
        self.environment = environment or config.environment()
        self.enabled = config.cloudwatch_enabled() if enabled is None else enabled
        self.namespace = f"WordGroups/{self.environment}"
        self._cloudwatch = cloudwatch

    @property
    def cloudwatch(self):
        if self._cloudwatch is None:
            self._cloudwatch = boto3.client('cloudwatch', region_name=config.aws_region())
        return self._cloudwatch

    def put_metric(self, metric_name: str, value: float, unit: str,
                   dimensions: Optional[Dict[str, str]] = None) -> None:
        """
        Put a metric to CloudWatch. Does nothing when metrics are disabled.

        Args:
            metric_name: Name of the metric
            value: Metric value
            unit: Metric unit (e.g., 'Count', 'Seconds')
            dimensions: Optional dictionary of dimension name-value pairs
        """
        if not self.enabled:
            return
        metric_data = {
            'MetricName': metric_name,
            'Value': value,
            'Unit': unit,
            'Timestamp': datetime.now(timezone.utc),
        }
        if dimensions:
            metric_data['Dimensions'] = [
                {'Name': k, 'Value': v} for k, v in dimensions.items()
            ]
        try:
            self.cloudwatch.put_metric_data(
                Namespace=self.namespace,
                MetricData=[metric_data]
            )
            logger.debug(f"Published metric {metric_name}: {value} {unit}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to publish metric {metric_name}: {e}")

    def track_game_completed(self, puzzle_id: str, won: bool, duration_seconds: int) -> None:
        outcome = 'Won' if won else 'Lost'
        self.put_metric('GamesCompleted', 1, 'Count', {'Outcome': outcome})
        self.put_metric('GameDuration', duration_seconds, 'Seconds', {'PuzzleId': puzzle_id})

    def track_error(self, error_type: str) -> None:
        self.put_metric('Errors', 1, 'Count', {'ErrorType': error_type})


# Global monitor instance
monitor = GameMonitor()
