"""
Price resolution engine.

Timed fetch, snapshot cache, fallback resolver and exchange-rate normalizer.
"""
