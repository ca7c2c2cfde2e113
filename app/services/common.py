from typing import Any, Dict, Iterable, List


def extract_label(item: Dict[str, Any]) -> str:
    for k in ("label", "title", "name", "description"):
        if k in item and item[k]:
            return str(item[k])
    return "Unknown"


def unique_strings(values: Iterable[Any]) -> List[str]:
    """Stringifies values, keeping first-seen order and dropping duplicates."""
    return list(dict.fromkeys(str(v) for v in values))


def join_labels(labels: Iterable[str]) -> str:
    """Joins labels for a sentence: "Sport", "Sport and League", "Sport, League and Season"."""
    labels = list(labels)
    if len(labels) <= 1:
        return "".join(labels)
    return ", ".join(labels[:-1]) + " and " + labels[-1]
