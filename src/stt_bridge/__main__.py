import argparse
import asyncio
import logging
import signal
import sys

from stt_bridge.config import SpeechBridgeConfig
from stt_bridge.domain.errors import SpeechBridgeError
from stt_bridge.domain.events import SpeechEventType, TranscriptEvent
from stt_bridge.log_format import ColoredFormatter

EVENT_LABELS = {
    SpeechEventType.START_OF_SPEECH: "START",
    SpeechEventType.INTERIM_TRANSCRIPT: "interim",
    SpeechEventType.FINAL_TRANSCRIPT: "FINAL",
    SpeechEventType.END_OF_SPEECH: "END",
}


def main() -> None:
    parser = argparse.ArgumentParser(description="Stream audio to a real-time speech-to-text provider")
    parser.add_argument("wav", nargs="?", help="16kHz mono 16-bit WAV file (default: microphone)")
    parser.add_argument("--provider", choices=["speechmatics", "gladia"], help="Transcription provider")
    parser.add_argument("--language", help="Language tag, e.g. en or he (default: provider default)")
    parser.add_argument("--check", action="store_true", help="Run startup checks and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    args = parser.parse_args()

    config = SpeechBridgeConfig()
    if args.provider:
        config.provider = args.provider
    if args.language:
        config.language = args.language

    _configure_logging(args.verbose, config.log_file)

    if args.check:
        from stt_bridge.health import has_critical_failures, run_startup_checks

        results = run_startup_checks(config, use_microphone=args.wav is None)
        sys.exit(1 if has_critical_failures(results) else 0)

    try:
        asyncio.run(_run(config, args.wav))
    except SpeechBridgeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


def _configure_logging(verbose: bool, log_file: str) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(ColoredFormatter(datefmt="%H:%M:%S"))
    handlers: list[logging.Handler] = [handler]
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%H:%M:%S")
        )
        handlers.append(file_handler)

    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, handlers=handlers)

    if verbose:
        logging.getLogger("websockets").setLevel(logging.INFO)
        logging.getLogger("httpcore").setLevel(logging.INFO)
        logging.getLogger("httpx").setLevel(logging.INFO)


async def _run(config: SpeechBridgeConfig, wav_path: str | None) -> None:
    from stt_bridge.factory import create_audio_source, create_recognizer

    recognizer = create_recognizer(config)
    source = create_audio_source(config, wav_path)

    shutdown_triggered = False

    def handle_signal() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            logging.warning("Forced exit")
            sys.exit(1)
        shutdown_triggered = True
        logging.info("Stopping audio input...")
        asyncio.create_task(source.stop())

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await source.start()
    try:
        async with recognizer.stream(source.read_frames()) as stream:
            async for event in stream:
                _print_event(event)
    finally:
        await source.stop()


def _print_event(event: TranscriptEvent) -> None:
    alternative = event.alternatives[0]
    label = EVENT_LABELS[event.type]
    if event.type in (SpeechEventType.START_OF_SPEECH, SpeechEventType.END_OF_SPEECH):
        print(f"[{label}] language={alternative.language}", flush=True)
        return
    print(
        f"[{label}] {alternative.start_time:6.2f}-{alternative.end_time:6.2f} "
        f"({alternative.confidence:.2f}) {alternative.text}",
        flush=True,
    )


if __name__ == "__main__":
    main()
