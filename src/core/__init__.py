"""Core domain package for alertgram.

Core contains label filters, the subscription registry and the dispatch loops
without any Telegram, Alertmanager or storage-specific code, keeping the
business logic portable.
"""
