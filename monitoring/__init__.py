"""
Monitoring Module

Contains the table anomaly monitor:
- Tick scheduling and lifecycle (monitor)
- Row scanning, caching and anomaly detection (scan_cache, scanner)
- Alert de-duplication and dispatch (signature, alerts)
- Bounded "load more" control (ramp)
- Change tracking (dirty)
- Browser probes and notifications (scraper, notifier)
"""
