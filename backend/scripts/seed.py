"""Seed a persistent database with the demo account, workflows and executions."""
from __future__ import annotations

import pathlib
import sys

ROOT = pathlib.Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.app import Config, create_app
from backend.app.sample_data import DEMO_EMAIL, load_sample_data
from backend.app.store import get_store


class SeedConfig(Config):
    SEED_SAMPLE_DATA = False


def main() -> None:
    app = create_app(SeedConfig)
    with app.app_context():
        store = get_store()
        if store.find_user_by_email(DEMO_EMAIL) is not None:
            print("Seed skipped", f"user {DEMO_EMAIL} already exists")
            return

        user = load_sample_data(store)
        workflows = len(user.workflows)
        executions = sum(len(workflow.executions) for workflow in user.workflows)

        print(
            "Seed completed",
            f"user={user.email}",
            f"workflows created={workflows}",
            f"executions created={executions}",
        )


if __name__ == "__main__":
    main()
