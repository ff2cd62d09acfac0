from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml

from app.assessments.maturity.types import ScoringParameters

CONFIG_PATH = Path(__file__).with_name("config.yaml")
REFERENCE_QUESTIONNAIRE_PATH = Path(__file__).with_name("reference_questionnaire.yaml")


@lru_cache(maxsize=1)
def load_config() -> ScoringParameters:
    with CONFIG_PATH.open("r", encoding="utf-8") as fh:
        raw: Dict[str, Any] = yaml.safe_load(fh)
    return ScoringParameters.from_raw(raw)


def load_reference_questionnaire() -> Dict[str, Any]:
    """Raw area/element/question tree of the reference questionnaire (v1)."""
    with REFERENCE_QUESTIONNAIRE_PATH.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh)
