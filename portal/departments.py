"""
Department normalisation.

Roster spreadsheets spell departments however the registrar's office felt
like that day. ``normalize_department`` folds the known variants onto the
canonical identifiers; ``is_valid_department`` is the hard gate applied
before any account is created. The two are kept apart on purpose: the
normaliser is best-effort and happily returns strings that are not valid.
"""

import re

VALID_DEPARTMENTS = frozenset(
    [
        "botany",
        "chemistry",
        "electronics",
        "english",
        "mathematics",
        "microbiology",
        "sports",
        "statistics",
        "zoology",
        "animation-science",
        "data-science",
        "artificial-intelligence",
        "bvoc-software-development",
        "bioinformatics",
        "computer-application",
        "computer-science-entire",
        "computer-science-optional",
        "drug-chemistry",
        "food-technology",
        "forensic-science",
        "nanoscience-and-technology",
        "fishery",
        "military-science",
        "physics",
        "music-science",
        "plant-protection",
        "seed-technology",
        "instrumentation",
    ]
)

# Keys are already lower-cased and hyphenated
DEPARTMENT_ALIASES = {
    "b.voc": "bvoc-software-development",
    "bvoc": "bvoc-software-development",
    "b.voc-software-development": "bvoc-software-development",
    "bvoc-software": "bvoc-software-development",
    "fisheries": "fishery",
    "plant-protection-science": "plant-protection",
    "plantprotection": "plant-protection",
    "physical-science": "physics",
}

_WHITESPACE = re.compile(r"\s+")


def normalize_department(raw):
    """Map free text onto a department identifier, or None when blank."""
    if raw is None:
        return None
    text = _WHITESPACE.sub("-", str(raw).strip().lower())
    if not text:
        return None
    return DEPARTMENT_ALIASES.get(text, text)


def is_valid_department(department) -> bool:
    return department in VALID_DEPARTMENTS
