"""Create a prize wheel campaign from a YAML file.

Usage: python bin/seed-game.py <campaign.yaml>

The database location comes from WHEEL_DATABASE_PATH (see WheelServerSettings).
"""

import asyncio
import sys
from pathlib import Path

# Add backend to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from prizewheel.catalog import CatalogError, load_game_file
from prizewheel.server.settings import WheelServerSettings
from shared.db import Database, SqliteGameRepository


async def main() -> None:
    if len(sys.argv) != 2:
        print(f"Usage: {sys.argv[0]} <campaign.yaml>")
        sys.exit(1)

    try:
        game = load_game_file(Path(sys.argv[1]))
    except CatalogError as e:
        print(f"Error: {e}")
        sys.exit(1)

    settings = WheelServerSettings()
    db = Database(settings.database_path)
    db.connect()
    try:
        try:
            await SqliteGameRepository(db).create_game(game)
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)
        real = sum(1 for s in game.segments if s.is_real_prize)
        print(f"Game created: {game.game_id} ({len(game.segments)} segments, {real} real prizes, status {game.status})")
    finally:
        db.close()


if __name__ == "__main__":
    asyncio.run(main())
