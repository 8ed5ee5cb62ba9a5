"""Command line entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

from ..audio.decoder import create_decoder
from ..common.constants import DEFAULT_DATA_DIR, DEFAULT_GAIN
from ..common.errors import FreesoundError, MixError
from ..library.freesound import FreesoundClient
from ..library.storage import Collection, LibraryStorage
from ..mixing.orchestrator import MixOrchestrator
from .recorder import MicrophoneRecorder


def setup_logging(log_file: str | None, verbose: bool = False) -> None:
    """Log to a file when given, otherwise only warnings to stderr."""
    handlers: list[logging.Handler]
    if log_file:
        handlers = [logging.FileHandler(log_file)]
        level = logging.DEBUG
    else:
        handlers = [logging.StreamHandler()]
        level = logging.DEBUG if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )
    # Request-level logs from httpx are noise here
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Search, record and mix sounds")
    parser.add_argument(
        "--data-dir",
        default=DEFAULT_DATA_DIR,
        help=f"Directory for the sound library (default: {DEFAULT_DATA_DIR})",
    )
    parser.add_argument("--log", help="Log file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument(
        "--api-key",
        default=os.environ.get("FREESOUND_API_KEY"),
        help="Freesound API token (default: $FREESOUND_API_KEY)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    search = commands.add_parser("search", help="Search Freesound")
    search.add_argument("query")

    download = commands.add_parser("download", help="Save a sound preview")
    download.add_argument("sound_id", type=int)
    download.add_argument("name")
    download.add_argument("url", help="Preview URL from search results")

    record = commands.add_parser("record", help="Record from the microphone")
    record.add_argument("--seconds", type=float, default=5.0)
    record.add_argument("--name", help="Recording name")

    mix = commands.add_parser("mix", help="Mix a download with a recording")
    mix.add_argument("download_id", type=int)
    mix.add_argument("recording_id", type=int)
    mix.add_argument("--gain-a", type=float, default=DEFAULT_GAIN)
    mix.add_argument("--gain-b", type=float, default=DEFAULT_GAIN)
    mix.add_argument(
        "--decoder", choices=["auto", "soundfile", "av"], default="auto"
    )
    mix.add_argument(
        "--resample",
        action="store_true",
        help="Resample the lower-rate source instead of summing positionally",
    )

    listing = commands.add_parser("list", help="List library entries")
    listing.add_argument(
        "collection",
        nargs="?",
        choices=[c.value for c in Collection],
        default=None,
    )
    return parser


def _require_api_key(args: argparse.Namespace) -> str:
    if not args.api_key:
        raise SystemExit("A Freesound API key is required (--api-key or FREESOUND_API_KEY)")
    return str(args.api_key)


async def run_command(args: argparse.Namespace, library: LibraryStorage) -> None:
    if args.command == "search":
        client = FreesoundClient(_require_api_key(args))
        for sound in await client.search(args.query):
            print(f"{sound.id}\t{sound.name}\t{sound.username}\t{sound.preview_url or '-'}")

    elif args.command == "download":
        client = FreesoundClient(args.api_key or "")
        data = await client.download(args.url)
        entry = library.save_download(args.sound_id, args.name, data)
        print(f"Saved download {entry.id}: {entry.name}")

    elif args.command == "record":
        recorder = MicrophoneRecorder()
        print(f"Recording for {args.seconds:.1f}s...")
        samples = await asyncio.to_thread(recorder.record, args.seconds)
        blob = recorder.to_blob(samples, args.name)
        entry = library.save_recording(blob.data, blob.name)
        print(f"Saved recording {entry.id}: {entry.name}")

    elif args.command == "mix":
        source_a = library.load(Collection.DOWNLOADS, args.download_id)
        source_b = library.load(Collection.RECORDINGS, args.recording_id)
        orchestrator = MixOrchestrator(create_decoder(args.decoder), library)
        encoded = await orchestrator.mix_sources(
            source_a, source_b, args.gain_a, args.gain_b, resample=args.resample
        )
        print(f"Saved mix {encoded.filename} ({len(encoded)} bytes)")

    elif args.command == "list":
        collections = (
            [Collection(args.collection)] if args.collection else list(Collection)
        )
        for collection in collections:
            entries = library.list_entries(collection)
            print(f"{collection.value} ({len(entries)})")
            for entry in entries:
                print(f"  {entry.id}\t{entry.name}\t{entry.date.isoformat()}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log, args.verbose)

    try:
        with LibraryStorage(args.data_dir) as library:
            asyncio.run(run_command(args, library))
    except MixError as e:
        print(f"Error ({e.stage}): {e}", file=sys.stderr)
        return 1
    except FreesoundError as e:
        print(f"Freesound error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    sys.exit(main())
