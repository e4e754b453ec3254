from enum import Enum


class ExerciseSource(str, Enum):
    user = "user"
    common = "common"

    def __str__(self) -> str:
        return self.value


class FreshnessState(str, Enum):
    cold = "cold"
    fetching = "fetching"
    fresh = "fresh"
    stale = "stale"

    def __str__(self) -> str:
        return self.value


class SessionState(str, Enum):
    idle = "idle"
    debouncing = "debouncing"
    searching = "searching"
    applying = "applying"

    def __str__(self) -> str:
        return self.value
