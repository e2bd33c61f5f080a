from pathlib import Path

import yaml
from dagster import Definitions, define_asset_job

from enrollment_dagster.assets.selection import evaluate_group_selections
from enrollment_dagster.resources.duckdb_resource import DuckDBResource

CONFIG_DIR = Path(__file__).resolve().parent / "configs"

# Load default selection run config
with open(CONFIG_DIR / "selection_example.yaml") as f:
    default_selection_config = yaml.safe_load(f)

selection_job = define_asset_job(
    name="selection_job",
    selection=["evaluate_group_selections"],
    description="""
    # Group Selection Job

    Evaluates plan-shopping requests against a marketplace snapshot.

    **Steps:**
    1. Reads requests from `main_intermediate.int_group_selection_requests`
    2. Resolves market, prior enrollment, benefit group and effective date
    3. Writes decisions to `main_runs.group_selection_decisions`
    """,
    tags={"team": "enrollment", "priority": "high"},
    config=default_selection_config,
)


definitions = Definitions(
    assets=[evaluate_group_selections],
    resources={
        "duckdb": DuckDBResource(),
    },
    jobs=[selection_job],
)
