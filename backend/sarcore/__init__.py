"""Core logic for multi-timeframe SAR signals.

This package contains pure business logic with no I/O dependencies
(no database, HTTP, or WebSocket access). I/O is injected by the live
service in sarbot/.
"""
