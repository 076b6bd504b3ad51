"""
Quest engagement timer persistence.

Timers map ``"<identity key>:<quest id>"`` to the epoch second the user was
first exposed to the quest. Stores only load and save whole snapshots; callers
mutate a copy and save it back, so two back-to-back starts for different
quests can never lose an update through a shared aliased dict.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerStore(Protocol):
    def load(self) -> Dict[str, float]:
        ...

    def save(self, timers: Mapping[str, float]) -> None:
        ...


class MemoryTimerStore:
    """Keeps timers for the lifetime of the process."""

    def __init__(self, initial: Optional[Mapping[str, float]] = None):
        self._timers: Dict[str, float] = dict(initial or {})

    def load(self) -> Dict[str, float]:
        return dict(self._timers)

    def save(self, timers: Mapping[str, float]) -> None:
        self._timers = dict(timers)


class JsonFileTimerStore:
    """
    Keeps timers in a JSON file so they survive a restart on the same machine.

    A corrupted file is moved aside and treated as empty.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> Dict[str, float]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(
                "Corrupted quest timer file, resetting",
                extra={"event": "quests.timer_store.file_corrupted", "error": str(e)},
            )
            self.path.rename(str(self.path) + ".corrupted")
            return {}
        if not isinstance(data, dict):
            return {}
        timers: Dict[str, float] = {}
        for key, value in data.items():
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                timers[str(key)] = float(value)
        return timers

    def save(self, timers: Mapping[str, float]) -> None:
        # Write-then-rename so a crash never leaves a half-written file
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(dict(timers), f, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)


def create_timer_store(path: Optional[str] = None) -> TimerStore:
    if path:
        return JsonFileTimerStore(path)
    return MemoryTimerStore()
