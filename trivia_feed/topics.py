"""
Topic catalog constants shared by the selection engine.

ALL_TOPICS lists every topic the catalog can produce. INITIAL_EXPLORATION_TOPICS
is the broad-appeal subset used for a brand new user's first impressions.
Alias topics are folded into a canonical name before any weight is touched.
"""

ALL_TOPICS = [
    "Ancient History",
    "Art",
    "Arts",
    "Astronomy",
    "Biology",
    "Chemistry",
    "Computers",
    "Countries",
    "Culture",
    "Engineering",
    "Entertainment",
    "Environment",
    "Food",
    "Food and Drink",
    "General Knowledge",
    "Geography",
    "History",
    "Language",
    "Literature",
    "Math",
    "Mathematics",
    "Miscellaneous",
    "Modern History",
    "Music",
    "Nature",
    "Physics",
    "Politics",
    "Pop Culture",
    "Science",
    "Sports",
    "Technology",
]

INITIAL_EXPLORATION_TOPICS = [
    "Music",
    "Science",
    "Arts",
    "Technology",
    "Pop Culture",
    "Literature",
    "Entertainment",
    "Miscellaneous",
    "Geography",
]

# canonical -> aliases
SIMILAR_TOPICS = {
    "Arts": ["Art"],
    "Mathematics": ["Math"],
    "Food and Drink": ["Food"],
}

DEFAULT_LEVEL_NAME = "General"

_ALIAS_TO_CANONICAL = {
    alias: canonical
    for canonical, aliases in SIMILAR_TOPICS.items()
    for alias in aliases
}


def standardize_topic(topic: str) -> str:
    """Map an alias topic name onto its canonical form ("Art" -> "Arts")."""
    topic = (topic or "").strip()
    if not topic:
        return DEFAULT_LEVEL_NAME
    return _ALIAS_TO_CANONICAL.get(topic, topic)


def canonical_topics() -> list[str]:
    """ALL_TOPICS with aliases removed, in catalog order."""
    return [t for t in ALL_TOPICS if t not in _ALIAS_TO_CANONICAL]
