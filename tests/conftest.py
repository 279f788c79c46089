from __future__ import annotations

import pytest

from vnstudio.config import settings
from vnstudio.modules.session.service import reset_sessions
from vnstudio.modules.telemetry.service import reset_runtime_telemetry


@pytest.fixture(autouse=True)
def _reset_registry_and_defaults() -> None:
    settings.history_capacity = 100
    settings.max_instant_steps = 10_000
    settings.strict_references = True
    settings.session_capacity = 64
    settings.background_generate_prefix = "generate:"
    reset_runtime_telemetry()
    reset_sessions()
    yield
    reset_runtime_telemetry()
    reset_sessions()
