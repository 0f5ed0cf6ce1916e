from typing import Dict, Iterable, Mapping, Optional, Set


class SlotCalendar:
    """Booked time slots of one doctor, keyed by date.

    Only booked times are stored; a time missing from its date entry is free.
    The persisted form (``Doctor.slots_booked``) is a JSON object of sorted
    lists, e.g. ``{"2024-05-01": ["09:30", "10:00"]}``.
    """

    def __init__(self, slots: Optional[Mapping[str, Iterable[str]]] = None):
        self._slots: Dict[str, Set[str]] = {}
        for slot_date, times in (slots or {}).items():
            self._slots[slot_date] = set(times or ())

    @classmethod
    def from_json(cls, data: Optional[Mapping[str, Iterable[str]]]) -> "SlotCalendar":
        return cls(data)

    def to_json(self) -> Dict[str, list]:
        return {slot_date: sorted(times) for slot_date, times in self._slots.items()}

    def is_booked(self, slot_date: str, slot_time: str) -> bool:
        return slot_time in self._slots.get(slot_date, ())

    def mark_booked(self, slot_date: str, slot_time: str) -> None:
        self._slots.setdefault(slot_date, set()).add(slot_time)

    def release(self, slot_date: str, slot_time: str) -> None:
        times = self._slots.get(slot_date)
        if times is not None:
            times.discard(slot_time)

    def booked_times(self, slot_date: str) -> Set[str]:
        return set(self._slots.get(slot_date, ()))

    def __eq__(self, other):
        if not isinstance(other, SlotCalendar):
            return NotImplemented
        return self._slots == other._slots

    def __repr__(self):
        return f"<SlotCalendar({self.to_json()})>"
