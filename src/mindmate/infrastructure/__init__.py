"""
MindMate Infrastructure Layer

Database, generative model providers, notifications, metrics and
error tracking.
"""
