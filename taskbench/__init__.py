"""Throughput benchmarks for a lock-based task scheduler and thread queues."""

__version__ = "0.1.0"