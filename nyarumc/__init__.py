"""Main module for the nyarumc launcher API.

The package installs one pinned game version with its Fabric loader overlay and mods,
launches it, and can query the status of a remote game server. Read the module
documentation of `standard`, `install` and `launch` for the general architecture.
"""

LAUNCHER_NAME = "nyarumc"
LAUNCHER_VERSION = "0.1.1"
LAUNCHER_AUTHORS = ["Nyaru contributors"]
LAUNCHER_COPYRIGHT = "nyarumc  Copyright (C) 2025-2026  Nyaru contributors"
LAUNCHER_URL = "https://github.com/nyaru/nyarumc"
