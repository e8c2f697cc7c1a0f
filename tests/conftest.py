from __future__ import annotations

import os

os.environ.setdefault("INFLUENCE_LOG_JSON", "false")
os.environ.setdefault("INFLUENCE_RUN_ORCHESTRATOR", "false")
os.environ.setdefault("INFLUENCE_AGGREGATOR_API_KEY", "MOCK_API_KEY")
