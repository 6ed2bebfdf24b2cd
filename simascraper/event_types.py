"""
Event type heuristics.

SIMA renders its UI in Spanish, so the type of a calendar entry is guessed
from the Spanish action text ("Vencimiento de Tarea") and from the title/alt
text of the activity icon.
"""

from __future__ import annotations


# (event type, keywords searched in the action text, keywords searched in the icon text)
# Order matters: first match wins.
ACTION_RULES: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("assign", ("tarea",), ("assign", "tarea")),
    ("quiz", ("cuestionario",), ("quiz", "cuestionario")),
    ("forum", ("foro",), ("forum", "foro")),
    ("exam", ("examen",), ("exam", "examen")),
)

# Used for list-style pages where only CSS classes and a title are available
CLASS_RULES: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("assignment", ("assignment",), ("tarea", "assignment")),
    ("quiz", ("quiz",), ("examen", "quiz")),
    ("forum", ("forum",), ("foro", "forum")),
    ("lesson", ("lesson",), ("lección", "clase")),
)

DEFAULT_EVENT_TYPE = "activity"


def map_action_type(action_type: str | None, activity_icon: str | None) -> str:
    """
    Map a timeline row to a standard event type.

    >>> map_action_type("Vencimiento de Tarea", "Tarea")
    'assign'
    >>> map_action_type("", "Cuestionario")
    'quiz'
    """
    action = (action_type or "").lower()
    icon = (activity_icon or "").lower()

    for event_type, action_words, icon_words in ACTION_RULES:
        if any(w in action for w in action_words) or any(w in icon for w in icon_words):
            return event_type
    return DEFAULT_EVENT_TYPE


def determine_event_type(class_names: str | None, title: str | None) -> str:
    classes = (class_names or "").lower()
    title_lower = (title or "").lower()

    for event_type, class_words, title_words in CLASS_RULES:
        if any(w in classes for w in class_words) or any(w in title_lower for w in title_words):
            return event_type
    return DEFAULT_EVENT_TYPE


def from_component(component: str | None, eventtype: str | None) -> str:
    """Month-grid cells carry data-event-component="mod_assign" etc."""
    if component:
        return component.replace("mod_", "", 1) or DEFAULT_EVENT_TYPE
    return eventtype or DEFAULT_EVENT_TYPE
