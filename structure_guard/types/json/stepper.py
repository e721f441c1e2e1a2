"""Stepper shared by the JSON value machines."""

import json
from typing import Any

from structure_guard.core.stepper import Stepper


class JsonValueStepper(Stepper):
    """Reports the matched text parsed as JSON (the raw text while incomplete)."""

    def get_current_value(self) -> Any:
        raw = self.get_raw_value()
        try:
            return json.loads(raw)
        except ValueError:
            return raw
