"""Group selection decision engine.

Decides the market, prior enrollment, benefit group assignment and coverage
effective date when a person reaches the plan-shopping step.
"""

from enrollment_rules.group_selection.directory import MarketplaceSnapshot
from enrollment_rules.group_selection.evaluator import GroupSelection
from enrollment_rules.group_selection.models import GroupSelectionRequest, SelectionResult

__all__ = ["GroupSelection", "GroupSelectionRequest", "MarketplaceSnapshot", "SelectionResult"]
