"""SAR signal bot service: candle access, scheduling, persistence, and API."""
