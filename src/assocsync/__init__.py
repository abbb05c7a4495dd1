"""assocsync — real-time data synchronization for association dashboards."""

__version__ = "0.1.0"
