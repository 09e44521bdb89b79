"""
Peer support services.

Tiered escalation of support requests, the buddy/community/global
network, and support statistics.
"""

from mindmate.services.support.escalation_engine import EscalationEngine
from mindmate.services.support.scheduler import SupportScheduler
from mindmate.services.support.support_network import SupportNetwork
from mindmate.services.support.support_statistics import (
    SupportStatisticsService,
    calculate_impact_score,
)

__all__ = [
    "EscalationEngine",
    "SupportNetwork",
    "SupportScheduler",
    "SupportStatisticsService",
    "calculate_impact_score",
]
