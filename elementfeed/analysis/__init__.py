"""Analysis stages: classification, safety screening and positivity scoring.

Each stage wraps the external analysis API and degrades to a local policy
when the API is unconfigured, failing, or over budget.
"""

from .budget import AnalysisBatcher, CostMonitor, CostStats, estimate_cost
from .classifier import ContentClassifier, heuristic_classification
from .client import AnalysisClient
from .positivity import PositivityScorer, heuristic_positivity
from .safety import SafetyScreener

__all__ = [
    "AnalysisBatcher",
    "AnalysisClient",
    "ContentClassifier",
    "CostMonitor",
    "CostStats",
    "PositivityScorer",
    "SafetyScreener",
    "estimate_cost",
    "heuristic_classification",
    "heuristic_positivity",
]
