import logging
import socket
from dataclasses import dataclass
from urllib.parse import urlparse

from stt_bridge.config import SpeechBridgeConfig

logger = logging.getLogger(__name__)

CRITICAL_CHECKS = {"api_key", "audio_device"}


@dataclass
class HealthCheckResult:
    name: str
    passed: bool
    detail: str


def run_startup_checks(config: SpeechBridgeConfig, use_microphone: bool = True) -> list[HealthCheckResult]:
    results = [_check_api_key(config), _check_provider_host(config)]
    if use_microphone:
        results.append(_check_audio_device(config))

    passed = sum(1 for r in results if r.passed)
    logger.info("Health check: %d/%d passed", passed, len(results))
    for result in results:
        level = logging.INFO if result.passed else logging.WARNING
        symbol = "OK" if result.passed else "FAIL"
        logger.log(level, "  [%s] %s: %s", symbol, result.name, result.detail)

    return results


def has_critical_failures(results: list[HealthCheckResult]) -> bool:
    return any(not r.passed and r.name in CRITICAL_CHECKS for r in results)


def _check_api_key(config: SpeechBridgeConfig) -> HealthCheckResult:
    name = "api_key"
    if config.resolve_api_key():
        return HealthCheckResult(name=name, passed=True, detail=f"{config.provider} key loaded")
    source = config.api_key_file or "STT_BRIDGE_API_KEY not set"
    return HealthCheckResult(name=name, passed=False, detail=f"Missing {config.provider} key ({source})")


def _check_provider_host(config: SpeechBridgeConfig) -> HealthCheckResult:
    name = "provider_host"
    url = config.gladia_api_url if config.provider == "gladia" else config.speechmatics_url
    host = urlparse(url).hostname
    if not host:
        return HealthCheckResult(name=name, passed=False, detail=f"Invalid URL: {url}")
    try:
        socket.getaddrinfo(host, None)
    except socket.gaierror as exc:
        return HealthCheckResult(name=name, passed=False, detail=f"Cannot resolve {host}: {exc}")
    return HealthCheckResult(name=name, passed=True, detail=f"{host} resolves")


def _check_audio_device(config: SpeechBridgeConfig) -> HealthCheckResult:
    name = "audio_device"
    try:
        import sounddevice as sd

        if not config.capture_device:
            default = sd.query_devices(kind="input")
            return HealthCheckResult(name=name, passed=True, detail=f"Default input: {default['name']}")

        for dev in sd.query_devices():
            if config.capture_device.lower() in dev["name"].lower() and dev["max_input_channels"] > 0:
                return HealthCheckResult(name=name, passed=True, detail=f"Device '{config.capture_device}' found")
        return HealthCheckResult(
            name=name,
            passed=True,
            detail=f"'{config.capture_device}' not in PortAudio (will use PIPEWIRE_NODE)",
        )
    except Exception as exc:
        return HealthCheckResult(name=name, passed=False, detail=str(exc))
