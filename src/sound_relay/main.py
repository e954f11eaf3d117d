"""Sound Relay - capture entry point."""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from sound_relay.config.settings import (
    SoundRelayConfig,
    create_example_env_file,
    load_config,
    parse_device,
    setup_logging,
)

logger = logging.getLogger("SoundRelay")


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"{value!r} is not a natural number")
    if number < 1:
        raise argparse.ArgumentTypeError(f"segment count must be at least 1, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Play a reference file while recording N segments and uploading each one",
    )
    parser.add_argument("playback_file", nargs="?", help="Reference WAV file, relative to the working directory")
    parser.add_argument("segments", nargs="?", type=positive_int, help="Number of segments to record")
    parser.add_argument("--config", type=str, default=".env", help="Path to config file")
    parser.add_argument("--create-config", action="store_true", help="Create example config file")
    parser.add_argument("--list-devices", action="store_true", help="List audio devices and exit")
    return parser


def run_capture(config: SoundRelayConfig, playback_path: str, segments: int) -> int:
    from sound_relay.audio.input.mic import AudioSource
    from sound_relay.audio.input.types import choose_format
    from sound_relay.audio.output.playback import ReferencePlayer
    from sound_relay.core.events import DeviceUnavailableError
    from sound_relay.core.jobs import BackgroundJobs
    from sound_relay.core.shutdown import GracefulShutdown
    from sound_relay.delivery.admin import clear_remote_store
    from sound_relay.delivery.client import DeliveryClient
    from sound_relay.orchestrator import Orchestrator

    source = AudioSource(device=parse_device(config.input_device))
    try:
        caps = source.capabilities()
        audio_format = choose_format(caps, config.preferred_sample_rate, config.preferred_channels)
    except DeviceUnavailableError as e:
        logger.error(f"No usable input device: {e}")
        return 1

    jobs = BackgroundJobs(max_workers=config.max_delivery_workers)
    if config.clear_on_start:
        jobs.submit("clear-remote-store", clear_remote_store, config.ingest_url, config.request_timeout_s)

    def delivery_factory(session):
        return DeliveryClient(
            config.ingest_url,
            segment_index=session.index,
            max_retries=config.max_retries,
            max_bytes=config.max_artifact_bytes,
            timeout_s=config.request_timeout_s,
            retry_delay_s=config.retry_delay_s,
            mode=config.delivery_mode,
        )

    shutdown = GracefulShutdown()
    orchestrator = Orchestrator(
        source,
        ReferencePlayer(device=parse_device(config.output_device)),
        jobs,
        delivery_factory,
        audio_format,
        playback_path=playback_path,
        artifact_dir=config.artifact_dir,
        artifact_ext=config.artifact_ext,
        segment_duration_s=config.segment_duration_s,
        settle_delay_s=config.settle_delay_s,
        stop_signal=shutdown,
    )

    try:
        run = orchestrator.run(segments)
        try:
            while not orchestrator.wait(timeout=0.5):
                pass
        except KeyboardInterrupt:
            logger.warning("Interrupted; finishing the current segment")
            shutdown.stop()
            orchestrator.wait()
    except DeviceUnavailableError as e:
        logger.error(f"Run aborted: {e}")
        jobs.shutdown(wait=True)
        return 1

    logger.info(f"Waiting for {jobs.in_flight} upload(s) to finish")
    jobs.shutdown(wait=True)

    for session in run.sessions:
        attempts = len(session.delivery.attempts) if session.delivery else 0
        logger.info(
            f"Segment {session.index}: {session.state.name} "
            f"({session.artifact_path}, {attempts} upload attempt(s))"
            + (f" - {session.error}" if session.error else "")
        )

    if run.error is not None:
        logger.error(f"Run ended early: {run.error}")
        return 1
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.create_config:
        create_example_env_file()
        print("Example configuration file created at .env.example")
        print("Please copy it to .env and adjust it.")
        return 0

    if args.list_devices:
        import sounddevice as sd
        print(sd.query_devices())
        return 0

    if args.playback_file is None or args.segments is None:
        parser.error("expected: <relative path of playback WAV file> <number of segments>")

    playback_path = os.path.join(os.getcwd(), args.playback_file)
    if not os.path.isfile(playback_path):
        parser.error(f"could not resolve playback file {args.playback_file!r}")

    try:
        config = load_config(Path(args.config))
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.log_level)
    logger.info(f"Playback file: {playback_path}")
    logger.info(f"Number of segments: {args.segments}")
    return run_capture(config, playback_path, args.segments)


if __name__ == "__main__":
    sys.exit(main())
