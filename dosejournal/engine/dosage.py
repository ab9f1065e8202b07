from typing import Optional

from dosejournal.engine.mass import Mass
from dosejournal.models.substance import DosageRoute

# Used when the dose or its bands are unknown
DEFAULT_TIER = 4

TIER_LABELS = {
    0: "threshold",
    1: "light",
    2: "common",
    3: "strong",
    4: "heavy",
    5: "overdose",
}


def classify_dose(dose: Optional[Mass], bands: Optional[DosageRoute]) -> int:
    """
    Map a dose onto the route's dosage bands.

    The dose's adjusted value (in its current unit) is compared ascending,
    boundaries inclusive, first match wins:
    threshold -> 0, light.max -> 1, common.max -> 2, strong.max -> 3,
    heavy -> 4, above everything -> 5. Bounds that are not declared are
    skipped.
    """
    if dose is None or bands is None:
        return DEFAULT_TIER

    amount = float(dose.adjusted)
    bounds = [
        bands.threshold,
        bands.light.max,
        bands.common.max,
        bands.strong.max,
        bands.heavy,
    ]
    for tier, bound in enumerate(bounds):
        if bound is not None and amount <= bound:
            return tier
    return 5
