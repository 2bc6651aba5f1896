import re
from typing import Optional

CATEGORY_KEYWORDS = [
    ("Legs-Push", ["leg press", "squat", "lunge", "leg extension", "hack squat"]),
    ("Legs-Pull", ["leg curl", "deadlift", "romanian deadlift", "hamstring"]),
    (
        "Arms-Push",
        ["chest press", "bench press", "shoulder press", "tricep", "overhead press", "dip"],
    ),
    ("Arms-Pull", ["lat pulldown", "pull up", "chin up", "row", "bicep", "curl"]),
    ("Core-Push", ["ab machine", "crunch", "sit up", "ab wheel"]),
    ("Core-Pull", ["hanging knee raise", "leg raise", "plank", "back extension"]),
]

CATEGORIES = [name for name, _ in CATEGORY_KEYWORDS]


def infer_category(name: str) -> Optional[str]:
    """Guess a category from an exercise name, first matching group wins."""
    cleaned = re.sub(r"[^a-zA-Z\s]", "", name or "")
    cleaned = re.sub(r"\s+", " ", cleaned)
    for category, keywords in CATEGORY_KEYWORDS:
        for keyword in keywords:
            if re.search(rf"\b{keyword}\b", cleaned, re.IGNORECASE):
                return category
    return None
