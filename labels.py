from schemas import Language

LABELS = {
    "koelsch": {
        "red": "Neu!",
        "orange": "Wartet",
        "green": "Läuft",
        "expired": "Abgelaufen",
        "order": "Bestellung",
        "waiter_call": "Köbes kumm ran",
        "claimed_by": "Übernommen von",
        "ordered_by": "Bestellt von",
    },
    "hochdeutsch": {
        "red": "Neu!",
        "orange": "Wartet",
        "green": "In Bearbeitung",
        "expired": "Abgelaufen",
        "order": "Bestellung",
        "waiter_call": "Kellner gerufen",
        "claimed_by": "Übernommen von",
        "ordered_by": "Bestellt von",
    },
}


def t(key: str, language: Language) -> str:
    return LABELS.get(language, {}).get(key) or LABELS["hochdeutsch"].get(key) or key
