"""Observability subsystem for appusage.

Collects device context snapshots on app launch and configures logging.

usage_collector: assembles AppUsage records from signal sources
platform_signals: signal sources backed by sysfs, procfs and psutil
logging_setup: structlog configuration and hot log-level changes
"""
