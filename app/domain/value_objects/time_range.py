"""Value Object TimeRange - franja horaria dentro de un día."""

from dataclasses import dataclass
from datetime import date, datetime, time


@dataclass(frozen=True)
class TimeRange:
    """
    Value Object inmutable que representa una franja [start, end) de un mismo día.

    Attributes:
        start: Hora de inicio.
        end: Hora de fin (exclusiva).
    """

    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"start debe ser anterior a end: {self.start} >= {self.end}")

    @property
    def duration_minutes(self) -> int:
        anchor = date(2000, 1, 1)
        delta = datetime.combine(anchor, self.end) - datetime.combine(anchor, self.start)
        return int(delta.total_seconds() // 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Verifica si este rango se superpone con otro (bordes no cuentan)."""
        return self.start < other.end and other.start < self.end

    def __str__(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"
