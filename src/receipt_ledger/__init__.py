"""
Receipt OCR → Payment Classification → Human-in-the-loop → Webhook Publish

Turns noisy text recovered from photographed payment receipts into a
pending transaction that its owner can edit, confirm or cancel. Confirmed
transactions are committed to a durable snapshot and forwarded downstream
exactly once.
"""

__version__ = "0.1.0"
