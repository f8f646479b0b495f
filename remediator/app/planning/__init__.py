from .base import BaseSpecialist, Specialist
from .confidence import ConfidenceScore, ConfidenceTier
from .alt_text import AltTextSpecialist
from .focus import FocusSpecialist
from .interaction import InteractionSpecialist
from .contrast import ContrastSpecialist
from .navigation import NavigationSpecialist
from .generic_aria import GenericAriaSpecialist
from .router import FixPlanningRouter, PlannedFix

__all__ = [
    "BaseSpecialist",
    "Specialist",
    "ConfidenceScore",
    "ConfidenceTier",
    "AltTextSpecialist",
    "FocusSpecialist",
    "InteractionSpecialist",
    "ContrastSpecialist",
    "NavigationSpecialist",
    "GenericAriaSpecialist",
    "FixPlanningRouter",
    "PlannedFix",
]
