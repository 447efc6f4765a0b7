"""Marketplace feed harvesting and bitable synchronization.

Subpackages:
- collector_mtop: signed protocol client, feed parser, detail enricher
- antibot: header randomization and request pacing
- bitable: destination store client and the idempotent sync engine
"""

__version__ = "1.0.0"
