# generate_playlists.py
import argparse
import asyncio
import json
import logging
from pathlib import Path

from config import load_settings
from playlists import generate_local

logger = logging.getLogger("pirate_radio.generate")


def main(argv=None) -> int:
	settings = load_settings()

	parser = argparse.ArgumentParser(description="Generate playlists.json from a local music folder.")
	parser.add_argument("music_dir", nargs="?", default=str(settings.music_dir), help="Path to music folder")
	parser.add_argument("--output", default="public/playlists.json", help="Output JSON file")
	args = parser.parse_args(argv)

	logging.basicConfig(level=logging.INFO, format="%(asctime)s  %(levelname)s  %(message)s")
	logger.info(f"Scanning {args.music_dir} for playlists")

	result = asyncio.run(generate_local(Path(args.music_dir)))

	output = Path(args.output)
	output.parent.mkdir(parents=True, exist_ok=True)
	output.write_text(json.dumps(result.to_json(), indent=2))

	logger.info(f"Generated {output} with {len(result.playlists)} playlist(s)")
	for playlist in result.playlists:
		logger.info(f"  - {playlist.name}: {len(playlist.tracks)} track(s)")
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
