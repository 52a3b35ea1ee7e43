"""Tour Record Loader

Reads exported tour snapshots from a JSON file. Accepts a bare list of tours
or a list wrapped under ``docs`` (CMS REST response) or ``tours``.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union


def load_tour_records(path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Load raw tour dictionaries from ``path``.

    Raises:
        FileNotFoundError: If file does not exist
        json.JSONDecodeError: If file is not valid JSON
        ValueError: If the top level holds no list of tours
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("docs", "tours"):
            if isinstance(data.get(key), list):
                return data[key]
    raise ValueError(f"{path} does not contain a list of tours")
