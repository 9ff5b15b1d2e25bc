#!/usr/bin/env python3
# =============================================================
#  examples/live_reload_example.py
# =============================================================
"""
Example showing subscriptions and live reload.

The script keeps its configuration in a temporary directory, subscribes to
the ``database`` section, writes a value through the API and then edits the
file "by hand" the way another process would. The watcher picks the edit up
on its next poll and the subscriber sees the new map.
"""

import json
import logging
import tempfile
import time
from pathlib import Path

from arca_config import ArcaConfig


def on_database(path, value):
    print(f"  {'.'.join(path)} -> {value}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    with tempfile.TemporaryDirectory() as tmp:
        with ArcaConfig(domain="demo", config_path=tmp, poll_interval=0.2) as cfg:
            print(f"Config file: {cfg.config_file}")
            cfg.subscribe("database", on_database)

            print("\n1. Writing through the API")
            cfg.put("database.host", "localhost")
            cfg.map["database.port"] = 5432
            cfg.notifier.flush(timeout=2)

            print("\n2. Editing the file directly")
            path = Path(cfg.config_file)
            data = json.loads(path.read_text(encoding="utf-8"))
            data["database"]["host"] = "db.internal"
            path.write_text(json.dumps(data, indent=4), encoding="utf-8")
            time.sleep(0.5)
            cfg.notifier.flush(timeout=2)

            print("\n3. Reading back")
            print(f"  database.host = {cfg.get('database.host').unwrap()}")
            print(f"  attrs access  = {cfg.map.attrs.database.port}")


if __name__ == "__main__":
    main()
