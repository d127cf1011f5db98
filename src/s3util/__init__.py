"""
s3util: Copy files and directory trees between local disk and S3.

This package uploads a file or a whole directory to an S3-compatible bucket,
or downloads a single object or every object under a prefix, using a bounded
pool of concurrent workers. Every file is an independent job; a failure in
one never stops the others, and all failures are reported together.

The primary entry point for programmatic use is the `TransferOrchestrator` class.
"""

from typing import List

from s3util.orchestrator import AggregateOutcome, TransferOrchestrator

__all__: List[str] = ["AggregateOutcome", "TransferOrchestrator"]
