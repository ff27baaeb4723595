from dataclasses import dataclass

import numpy as np

from .geodesics import normalize_angle


@dataclass(frozen=True)
class PhysVec:
    """A polar vector on the local tangent plane.

    ``magnitude`` is non-negative and ``angle`` is in degrees clockwise
    from north in [0, 360). Arithmetic goes through east/north components
    so that wind, current and vessel velocities add as true vectors.
    """

    magnitude: float = 0.0
    angle: float = 0.0

    def __post_init__(self):
        magnitude, angle = float(self.magnitude), float(self.angle)
        if magnitude < 0:
            magnitude, angle = -magnitude, angle + 180.0
        object.__setattr__(self, "magnitude", magnitude)
        object.__setattr__(self, "angle", normalize_angle(angle))

    @classmethod
    def from_components(cls, east: float = None, north: float = None):
        """Construct from eastward and northward components."""
        east, north = float(east), float(north)
        magnitude = float(np.hypot(east, north))
        if magnitude == 0:
            return cls(magnitude=0.0, angle=0.0)
        return cls(magnitude=magnitude, angle=np.rad2deg(np.arctan2(east, north)))

    @property
    def east(self) -> float:
        """Eastward component."""
        return self.magnitude * float(np.cos(np.deg2rad(90.0 - self.angle)))

    @property
    def north(self) -> float:
        """Northward component."""
        return self.magnitude * float(np.sin(np.deg2rad(90.0 - self.angle)))

    def __add__(self, other):
        return PhysVec.from_components(
            east=self.east + other.east, north=self.north + other.north
        )

    def __sub__(self, other):
        return self + (-other)

    def __neg__(self):
        return PhysVec(magnitude=self.magnitude, angle=self.angle + 180.0)

    def __mul__(self, factor: float):
        return PhysVec(magnitude=self.magnitude * factor, angle=self.angle)

    __rmul__ = __mul__

    def to_dict(self):
        return {"magnitude": self.magnitude, "angle": self.angle}

    @classmethod
    def from_dict(cls, data: dict = None):
        return cls(magnitude=data["magnitude"], angle=data["angle"])


ZERO = PhysVec(magnitude=0.0, angle=0.0)
