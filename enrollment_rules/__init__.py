"""Enrollment rules - marketplace decision engines.

Available engines:
    - GroupSelection: market, prior enrollment, benefit group and effective
      date selection for the plan-shopping step
"""

from enrollment_rules.group_selection import GroupSelection, GroupSelectionRequest, SelectionResult

__all__ = ["GroupSelection", "GroupSelectionRequest", "SelectionResult"]
