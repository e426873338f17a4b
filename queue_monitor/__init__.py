"""Job lifecycle monitoring for background queues."""

__version__ = "0.1.0"
