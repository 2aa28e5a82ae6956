"""Read-only exit-survey retention scanning."""

from bibleos_ops.retention.models import Capability, CompanyRetention, RetentionScan
from bibleos_ops.retention.scanner import RetentionScanner, parse_positive_int, scan_retention

__all__ = [
    "Capability",
    "CompanyRetention",
    "RetentionScan",
    "RetentionScanner",
    "parse_positive_int",
    "scan_retention",
]
