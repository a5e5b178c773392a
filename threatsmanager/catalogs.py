"""Standard severity and strength catalogs."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .model import ThreatModel


# id, name, text color, back color
STANDARD_SEVERITIES = [
    (1, "Info", "#ffffff", "#53aa33"),
    (25, "Low", "#000000", "#ffcb0d"),
    (50, "Medium", "#000000", "#f9a009"),
    (75, "High", "#ffffff", "#df3d03"),
    (100, "Critical", "#ffffff", "#cc0500"),
]

STANDARD_STRENGTHS = [
    (10, "Negligible"),
    (25, "Low"),
    (50, "Average"),
    (75, "Strong"),
    (100, "Maximum"),
]


def get_severity_rating(severity_id: int) -> str:
    """Name of the standard band a severity id falls into."""
    if severity_id <= 0:
        return "None"
    elif severity_id < 25:
        return "Info"
    elif severity_id < 50:
        return "Low"
    elif severity_id < 75:
        return "Medium"
    elif severity_id < 100:
        return "High"
    else:
        return "Critical"


def initialize_standard_catalogs(model: 'ThreatModel') -> int:
    """Add the standard severities and strengths missing from the model. Returns the number added."""
    added = 0
    for severity_id, name, text_color, back_color in STANDARD_SEVERITIES:
        severity = model.add_severity(severity_id, name)
        if severity is not None:
            severity.text_color = text_color
            severity.back_color = back_color
            added += 1
    for strength_id, name in STANDARD_STRENGTHS:
        if model.add_strength(strength_id, name) is not None:
            added += 1
    return added
