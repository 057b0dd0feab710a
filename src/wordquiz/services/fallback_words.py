"""
Built-in word banks used when a word source is unavailable.
Only a few pairs have their own sample; every other pair gets easy/general.
"""
from typing import Any, Dict, List

from wordquiz.models.word_models import WordBank, WordEntry, cache_key

DEFAULT_FALLBACK_KEY = "easy_general"

FALLBACK_WORDS: Dict[str, List[Dict[str, Any]]] = {
    "easy_general": [
        {
            "word": "Happy",
            "pronunciation": "/ˈhæp.i/",
            "correct_definition": "Feeling joy or pleasure",
            "incorrect_options": [
                "Feeling tired and sleepy",
                "Feeling angry or upset",
                "Feeling confused or lost",
            ],
        },
        {
            "word": "Brave",
            "pronunciation": "/breɪv/",
            "correct_definition": "Showing courage in dangerous situations",
            "incorrect_options": [
                "Being very tall and strong",
                "Moving slowly and carefully",
                "Eating food very quickly",
            ],
        },
    ],
    "medium_general": [
        {
            "word": "Serendipity",
            "pronunciation": "/ˌser·ən·dɪp·ɪ·ti/",
            "correct_definition": "A pleasant surprise; finding something good unexpectedly",
            "incorrect_options": [
                "A feeling of deep sadness or melancholy",
                "The ability to speak multiple languages fluently",
                "A state of complete chaos or disorder",
            ],
        },
    ],
    "hard_general": [
        {
            "word": "Ubiquitous",
            "pronunciation": "/juːˈbɪk.wɪ.təs/",
            "correct_definition": "Present everywhere at the same time",
            "incorrect_options": [
                "Extremely rare and valuable",
                "Moving in circular motions",
                "Related to ancient history",
            ],
        },
    ],
}


def get_fallback_bank(difficulty: str, category: str) -> WordBank:
    """Sample bank for a pair, never empty."""
    words = FALLBACK_WORDS.get(cache_key(difficulty, category)) or FALLBACK_WORDS[DEFAULT_FALLBACK_KEY]
    return WordBank(
        difficulty=difficulty,
        category=category,
        words=tuple(WordEntry.from_dict(word) for word in words),
    )
