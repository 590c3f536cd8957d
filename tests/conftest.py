from __future__ import annotations

from typing import Any, Dict

import pytest

from investing_toolbox.settings.config import Config

from factories import build_companyfacts


@pytest.fixture
def companyfacts_payload() -> Dict[str, Any]:
    return build_companyfacts()


@pytest.fixture
def tmp_config(tmp_path) -> Config:
    cfg = Config(
        database_path=tmp_path / "data" / "toolbox.db",
        output_dir=tmp_path / "reports",
        max_workers=2,
    )
    cfg.ensure_directories()
    return cfg
