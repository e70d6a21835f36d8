"""
Keyword categorization of memory text.

Assigns one of the MEMORY_CATEGORIES to a fact at insert time so recall
can be filtered by category.
"""

import re

from .base import MemoryCategory

PERSONAL_KEYWORDS = [
    "name", "age", "birthday", "born", "lives", "from", "family", "spouse", "married",
    "children", "child", "kids", "parent", "mother", "father", "sister", "brother",
    "nationality", "ethnicity", "religion", "belief", "identity", "grew up", "raised",
    "hometown", "background", "history", "personality", "character", "trait",
]

PROFESSIONAL_KEYWORDS = [
    "job", "work", "career", "company", "business", "profession", "position", "occupation",
    "employed", "studies", "studied", "education", "school", "university", "college", "degree",
    "graduated", "student", "major", "field", "industry", "salary", "project", "skill",
    "expertise", "experience", "trained", "certified", "qualification", "resume", "interview",
]

PREFERENCE_KEYWORDS = [
    "like", "enjoy", "love", "prefer", "favorite", "favourite", "fond", "hate", "dislike",
    "interested in", "excited by", "appealing", "tasty", "delicious", "good", "great",
    "amazing", "wonderful", "fantastic", "terrible", "awful", "bad", "boring", "fan of",
    "doesn't like", "can't stand", "allergic to", "would rather", "wish", "crave", "desire",
    "want", "appreciate", "value",
]

HOBBY_KEYWORDS = [
    "hobby", "hobbies", "collect", "play", "game", "sport", "activity", "activities",
    "weekend", "spare time", "pastime", "leisure", "recreation", "interest", "tournament",
    "competition", "league", "team", "club", "group", "exercise", "workout", "fitness",
    "practice", "craft", "art", "music", "instrument", "read", "book", "movie", "show",
    "series", "travel", "adventure", "explore", "create", "build", "make", "cook", "bake",
]

CONTACT_KEYWORDS = [
    "email", "phone", "address", "contact", "reach", "social media", "instagram", "twitter",
    "facebook", "snapchat", "tiktok", "linkedin", "profile", "account", "username", "handle",
    "website", "blog", "channel", "discord", "steam", "gamer tag", "psn", "xbox live",
    "number", "call",
]

FOOD_KEYWORDS = [
    "food", "eat", "dish", "meal", "cuisine", "cook", "bake", "recipe", "restaurant",
    "breakfast", "lunch", "dinner", "snack", "dessert", "fruit", "vegetable", "meat",
    "drink", "beverage",
]

# Phrasings of opinion that carry no preference keyword
OPINION_PHRASES = [
    "would like", "thinks that", "feels that", "believes", "agrees with", "disagrees with",
]

# Checked in order; the first category with a keyword hit wins
CATEGORY_KEYWORDS: list[tuple[MemoryCategory, list[str]]] = [
    ("personal", PERSONAL_KEYWORDS),
    ("professional", PROFESSIONAL_KEYWORDS),
    ("preferences", PREFERENCE_KEYWORDS),
    ("hobbies", HOBBY_KEYWORDS),
    ("contact", CONTACT_KEYWORDS),
]

CATEGORY_EXAMPLES: dict[str, list[str]] = {
    "personal": [
        "User is 32 years old",
        "User lives in Chicago",
        "User has two brothers",
    ],
    "professional": [
        "User works as a graphic designer",
        "User studied biology at UCLA",
        "User is looking for a new job",
    ],
    "preferences": [
        "User enjoys chocolate ice cream",
        "User doesn't like horror movies",
        "User is a big fan of Taylor Swift",
    ],
    "hobbies": [
        "User plays basketball on weekends",
        "User collects vintage vinyl records",
        "User enjoys hiking",
    ],
    "contact": [
        "User can be reached at user@example.com",
        "User's Instagram handle is @username",
    ],
}

_WORD_SPLIT = re.compile(r"\W+")


def _words(text: str) -> set[str]:
    return {w for w in _WORD_SPLIT.split(text.lower()) if len(w) > 2}


def _example_overlap_category(text: str) -> MemoryCategory | None:
    """Pick the category whose example sentences share the most words with text."""
    words = _words(text)
    best_category = None
    best_score = 0.0

    for category, examples in CATEGORY_EXAMPLES.items():
        overlap = sum(len(words & _words(example)) for example in examples)
        score = overlap / len(examples)
        if score > best_score:
            best_score = score
            best_category = category

    return best_category if best_score > 0.5 else None


def categorize_memory(text: str) -> MemoryCategory:
    """
    Assign a category to a memory using keyword matching.

    Food terms combined with a preference term always count as a
    preference. Otherwise the first category with a keyword hit wins,
    then opinion phrasings, then word overlap with example facts.
    Falls back to "other".
    """
    lowered = text.lower()

    food = any(term in lowered for term in FOOD_KEYWORDS)
    preference = any(term in lowered for term in PREFERENCE_KEYWORDS)
    if food and preference:
        return "preferences"

    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return category

    if any(phrase in lowered for phrase in OPINION_PHRASES):
        return "preferences"

    return _example_overlap_category(text) or "other"
