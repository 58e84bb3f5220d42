"""Type definitions for the floor plan engine."""
from __future__ import annotations

import math
from dataclasses import dataclass, field

from .errors import InvalidGeometry


@dataclass(frozen=True)
class Point:
    """Represents a point in 2D space."""
    x: float
    y: float


@dataclass(frozen=True)
class FloorPlan:
    """Floor plan bounds in meters, origin at the top-left corner."""
    width: float
    height: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.width) and math.isfinite(self.height)):
            raise InvalidGeometry("Floor plan size must be finite")
        if self.width <= 0 or self.height <= 0:
            raise InvalidGeometry("Floor plan size must be positive")

    @property
    def grid_width(self) -> int:
        return round(self.width)

    @property
    def grid_height(self) -> int:
        return round(self.height)

    def contains(self, x: float, y: float) -> bool:
        return 0 <= x <= self.width and 0 <= y <= self.height

    def clamp(self, x: float, y: float) -> Point:
        return Point(
            x=max(0.0, min(self.width, x)),
            y=max(0.0, min(self.height, y)),
        )


@dataclass(frozen=True)
class Wall:
    """Represents a wall segment."""
    id: str | None
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def length(self) -> float:
        return math.hypot(self.x2 - self.x1, self.y2 - self.y1)

    @property
    def is_degenerate(self) -> bool:
        return self.length == 0


@dataclass(frozen=True)
class SensorNode:
    """A sensor placed (or waiting to be placed) on the floor plan."""
    id: str
    name: str = ""
    x: float | None = None
    y: float | None = None
    radius: float = 15.0
    point_size: float = 6.0
    active: bool = True
    entities: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def is_placed(self) -> bool:
        """True when the node has a finite position."""
        if self.x is None or self.y is None:
            return False
        return math.isfinite(self.x) and math.isfinite(self.y)


@dataclass(frozen=True)
class HeatSource:
    """A placed node joined with its latest reading on one channel."""
    x: float
    y: float
    value: float
    radius: float


@dataclass(frozen=True)
class SensorChannel:
    """A named scalar reading channel with its default display range."""
    key: str
    label: str
    unit: str
    min: float
    max: float


SENSOR_CHANNELS: tuple[SensorChannel, ...] = (
    SensorChannel("temperature_c", "Temperature", "°C", 20, 45),
    SensorChannel("humidity_pct", "Humidity", "%", 30, 100),
    SensorChannel("pressure_hpa", "Pressure", "hPa", 990, 1030),
    SensorChannel("eco2_ppm", "eCO₂", "ppm", 400, 5000),
    SensorChannel("tvoc_ppb", "TVOC", "ppb", 0, 1000),
    SensorChannel("pm25_ugm3", "PM2.5", "µg/m³", 0, 100),
    SensorChannel("battery_pct", "Battery", "%", 0, 100),
)


def get_channel(key: str) -> SensorChannel | None:
    """Look up a channel definition by key."""
    for channel in SENSOR_CHANNELS:
        if channel.key == key:
            return channel
    return None


@dataclass(frozen=True)
class ColorStop:
    """A gradient stop; position in [0, 1], color as an RGB tuple."""
    position: float
    color: tuple[int, int, int]


@dataclass(frozen=True)
class HeatmapConfig:
    """User-tunable heatmap parameters."""
    enabled: bool = True
    opacity: int = 160
    power: float = 2.0
    radius_multiplier: float = 1.0
    min_override: float | None = None
    max_override: float | None = None
    color_stops: tuple[ColorStop, ...] = ()
    channel: str = "temperature_c"


@dataclass
class Raster:
    """Scalar grid over the floor plan, one cell per meter; nan marks missing cells."""
    width: int
    height: int
    cells: list[list[float]]  # [y][x]

    @classmethod
    def empty(cls, width: int, height: int) -> Raster:
        return cls(
            width=width,
            height=height,
            cells=[[math.nan] * width for _ in range(height)],
        )

    def value_at(self, x: int, y: int) -> float:
        return self.cells[y][x]

    def defined_count(self) -> int:
        return sum(1 for row in self.cells for value in row if not math.isnan(value))


@dataclass(frozen=True)
class InspectResult:
    """Average of the defined raster cells inside an inspected rectangle."""
    average: float
    unit: str
    sample_count: int
