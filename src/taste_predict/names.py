"""Readable names for attribute values shown in prediction reasons."""

# TMDb genre ids (movie and TV lists)
GENRE_NAMES = {
    28: "Action",
    12: "Adventure",
    16: "Animation",
    35: "Comedy",
    80: "Crime",
    99: "Documentary",
    18: "Drama",
    10751: "Family",
    14: "Fantasy",
    36: "History",
    27: "Horror",
    10402: "Music",
    9648: "Mystery",
    10749: "Romance",
    878: "Sci-Fi",
    10770: "TV Movie",
    53: "Thriller",
    10752: "War",
    37: "Western",
    10759: "Action & Adventure",
    10762: "Kids",
    10763: "News",
    10764: "Reality",
    10765: "Sci-Fi & Fantasy",
    10766: "Soap",
    10767: "Talk",
    10768: "War & Politics",
}

LANGUAGE_NAMES = {
    "en": "English",
    "fr": "French",
    "es": "Spanish",
    "de": "German",
    "it": "Italian",
    "ja": "Japanese",
    "ko": "Korean",
    "zh": "Chinese",
    "cn": "Cantonese",
    "hi": "Hindi",
    "pt": "Portuguese",
    "ru": "Russian",
    "sv": "Swedish",
    "da": "Danish",
    "no": "Norwegian",
    "fa": "Persian",
    "tr": "Turkish",
    "pl": "Polish",
    "nl": "Dutch",
    "th": "Thai",
}

COUNTRY_NAMES = {
    "US": "United States",
    "GB": "United Kingdom",
    "FR": "France",
    "DE": "Germany",
    "IT": "Italy",
    "ES": "Spain",
    "JP": "Japan",
    "KR": "South Korea",
    "CN": "China",
    "HK": "Hong Kong",
    "IN": "India",
    "CA": "Canada",
    "AU": "Australia",
    "MX": "Mexico",
    "BR": "Brazil",
    "SE": "Sweden",
    "DK": "Denmark",
    "NO": "Norway",
    "IR": "Iran",
    "NZ": "New Zealand",
}


def genre_name(genre_id: int) -> str:
    return GENRE_NAMES.get(genre_id, f"Genre {genre_id}")


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code.lower(), code.upper())


def country_name(code: str) -> str:
    return COUNTRY_NAMES.get(code.upper(), code.upper())


def person_name(normalized: str) -> str:
    """Turn a normalized talent key ('christopher_nolan') back into 'Christopher Nolan'."""
    return " ".join(part.capitalize() for part in normalized.split("_") if part)
