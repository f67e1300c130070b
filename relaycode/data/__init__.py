"""Seed data loading."""

from __future__ import annotations

import json
import logging
from importlib import resources
from pathlib import Path
from typing import Any

from relaycode.core.models import Prompt, Transaction

logger = logging.getLogger(__name__)

SEED_FILE_NAME = "seed.json"


def _read_seed(path: str | Path | None) -> dict[str, Any]:
    if path is None:
        return json.loads(resources.files(__package__).joinpath(SEED_FILE_NAME).read_text(encoding="utf-8"))
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def load_seed(path: str | Path | None = None) -> tuple[list[Transaction], list[Prompt]]:
    """Parse the seed file (the packaged one by default) into models."""
    raw = _read_seed(path)
    transactions = [Transaction.model_validate(item) for item in raw.get("transactions", [])]
    prompts = [Prompt.model_validate(item) for item in raw.get("prompts", [])]
    logger.debug("Parsed seed %s", path or SEED_FILE_NAME)
    return transactions, prompts
