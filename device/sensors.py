from __future__ import annotations

import math
import random
from typing import Optional, Tuple


class SimulatedSensors:
    """Mock temperature and humidity sensors.

    Readings are whole numbers drawn uniformly from the integers inside the
    inclusive ``[min, max]`` bounds. A local PRNG with an optional seed keeps
    runs repeatable.
    """

    def __init__(
        self,
        *,
        temp_bounds: Tuple[float, float] = (20.0, 35.0),
        hum_bounds: Tuple[float, float] = (40.0, 80.0),
        seed: Optional[int] = None,
    ):
        self._temp_bounds = self._whole_bounds(temp_bounds)
        self._hum_bounds = self._whole_bounds(hum_bounds)
        self._rng = random.Random(seed)

    @staticmethod
    def _whole_bounds(bounds: Tuple[float, float]) -> Tuple[int, int]:
        low, high = math.ceil(bounds[0]), math.floor(bounds[1])
        if low > high:
            raise ValueError(f"No whole number within bounds {bounds}")
        return low, high

    def _draw(self, bounds: Tuple[int, int]) -> float:
        return float(self._rng.randint(*bounds))

    def read_temperature(self) -> float:
        return self._draw(self._temp_bounds)

    def read_humidity(self) -> float:
        return self._draw(self._hum_bounds)

    def read(self) -> Tuple[float, float]:
        return self.read_temperature(), self.read_humidity()
