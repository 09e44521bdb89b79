"""
MindMate Service Layer

Analysis pipeline and peer-support escalation.
"""
