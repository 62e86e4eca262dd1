"""
webspider

A polite, rule-constrained web crawler engine.
"""

__version__ = "1.0.0"
__description__ = "Rule-constrained web crawler with pausable crawl loop and observer callbacks"
