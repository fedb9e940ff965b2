"""
Showroom Kernel - voice-command invoicing core

Turns a transcribed sales utterance into a posted invoice:
- Deterministic tokenizer and fixed command grammar
- Entity resolution against customer and product stores
- Exact decimal pricing with half-up rounding
- Atomic stock / invoice / cash-flow posting under concurrency
"""

__version__ = "0.1.0"
