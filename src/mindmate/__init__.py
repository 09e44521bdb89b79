"""
MindMate - Mental Health Signal Pipeline and Peer Support Escalation

This package provides the backend services that turn daily health signals
and mood check-ins into mental-health assessments, and that route support
requests through a user's buddies, communities and the wider platform.

IMPORTANT: Assessments can trigger outreach to other people.
The support request status field is the single source of truth.
"""

__version__ = "0.1.0"
__author__ = "MindMate Engineering Team"
