"""
Deliberation rules of the planner

Each rule watches part of the beliefs and proposes candidate intentions
when triggered.
"""

from .base import DeliberationRule
from .field_care import FieldCareRule
from .restock import RestockRule
from .sales import SalesRule

__all__ = ['DeliberationRule', 'FieldCareRule', 'RestockRule', 'SalesRule']
