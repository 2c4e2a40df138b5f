#!/usr/bin/env python3
"""
Run the Discord MultiHost control API and Discord client.

Reads DISCORD_BOT_TOKEN and the other settings from the environment or a
.env file in the working directory.
"""

import sys
from pathlib import Path

# Add src directory to Python path
src_path = Path(__file__).parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from discord_multihost.api.server import main

if __name__ == "__main__":
    main()
