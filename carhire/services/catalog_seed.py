"""Bundled car catalog loading."""

from importlib import resources
from pathlib import Path
from typing import Optional

import yaml

from carhire.models.car import CarInput

BUNDLED_CATALOG = "cars.yaml"


def load_catalog(path: Optional[str] = None) -> list[CarInput]:
    """Load car entries from a YAML file, or the bundled catalog when no path is given."""
    if path:
        text = Path(path).read_text(encoding="utf-8")
    else:
        text = resources.files("carhire.data").joinpath(BUNDLED_CATALOG).read_text(encoding="utf-8")

    document = yaml.safe_load(text) or {}
    return [CarInput(**entry) for entry in document.get("cars", [])]
