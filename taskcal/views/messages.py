from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, List

from ..schemas import CalendarEvent, EventKind, TimeCategory
from .formatting import CATEGORY_LABELS, bullet_list, format_event_line


def group_by_category(events: Iterable[CalendarEvent]) -> Dict[TimeCategory, List[CalendarEvent]]:
    groups: Dict[TimeCategory, List[CalendarEvent]] = {category: [] for category in TimeCategory}
    for event in events:
        if event.time_category is not None:
            groups[event.time_category].append(event)
    return {category: items for category, items in groups.items() if items}


def agenda_digest(events: Iterable[CalendarEvent], today: date) -> str:
    events = list(events)
    parts = [f"Agenda for {today:%A %Y-%m-%d}:"]
    for category, items in group_by_category(events).items():
        parts.append(f"{CATEGORY_LABELS[category]}:")
        parts.append(bullet_list(format_event_line(event, today) for event in items))
    tracked = [event for event in events if event.kind == EventKind.TIME_ENTRY]
    if tracked:
        parts.append("Tracked time:")
        parts.append(bullet_list(format_event_line(event) for event in tracked))
    if len(parts) == 1:
        parts.append("Nothing on the calendar.")
    return "\n".join(parts)
