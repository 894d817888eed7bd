import asyncio
import logging
import os
from collections.abc import AsyncIterator

import janus
import numpy as np
import sounddevice as sd

from stt_bridge.domain.audio import FLUSH, NUM_CHANNELS, SAMPLE_RATE, AudioFrame, FlushSentinel

logger = logging.getLogger(__name__)

QUEUE_FRAMES = 100
_END = None


class SounddeviceCapture:
    """Microphone input as 16kHz mono PCM frames.

    PortAudio delivers float32 blocks on its own thread; they are converted to
    int16 there and handed to the event loop through a janus queue. When the
    queue is full the newest block is dropped. ``stop()`` ends ``read_frames``
    with a FLUSH marker.
    """

    def __init__(
        self,
        device: str | int | None = None,
        frame_duration_ms: int = 20,
        gain: float = 1.0,
    ) -> None:
        self._device = device
        self._frame_duration_ms = frame_duration_ms
        self._frame_size = int(SAMPLE_RATE * frame_duration_ms / 1000)
        self._gain = gain
        self._stream: sd.InputStream | None = None
        self._queue: janus.Queue[bytes | None] | None = None
        self.overruns = 0

    @property
    def sample_rate(self) -> int:
        return SAMPLE_RATE

    @property
    def frame_size(self) -> int:
        return self._frame_size

    async def start(self) -> None:
        self._queue = janus.Queue(maxsize=QUEUE_FRAMES)
        self.overruns = 0
        queue = self._queue

        def on_block(indata: np.ndarray, frames: int, time_info, status) -> None:
            if status:
                logger.warning("Capture status: %s", status)
            samples = np.clip(indata[:, 0] * self._gain, -1.0, 1.0)
            try:
                queue.sync_q.put_nowait((samples * 32767).astype(np.int16).tobytes())
            except janus.SyncQueueFull:
                self.overruns += 1
                if self.overruns == 1:
                    logger.warning("Capture queue full, dropping microphone audio")

        device = self._resolve_device()
        self._stream = sd.InputStream(
            device=device,
            samplerate=SAMPLE_RATE,
            channels=NUM_CHANNELS,
            dtype="float32",
            blocksize=self._frame_size,
            callback=on_block,
        )
        self._stream.start()
        logger.info("Microphone open (device=%s, frame=%dms, gain=%.1f)", device, self._frame_duration_ms, self._gain)

    async def stop(self) -> None:
        if self._stream is None:
            return
        self._stream.stop()
        self._stream.close()
        self._stream = None
        if self._queue is not None:
            # the reader may be behind; make room for the end marker
            while self._queue.async_q.full():
                self._queue.async_q.get_nowait()
            self._queue.async_q.put_nowait(_END)
        logger.info("Microphone closed (%d overruns)", self.overruns)

    async def read_frames(self) -> AsyncIterator[AudioFrame | FlushSentinel]:
        queue = self._queue
        if queue is None:
            return
        try:
            while True:
                try:
                    data = await asyncio.wait_for(queue.async_q.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue
                if data is _END:
                    yield FLUSH
                    return
                yield AudioFrame(data=data)
        finally:
            queue.close()
            await queue.wait_closed()
            if self._queue is queue:
                self._queue = None

    def _resolve_device(self) -> int | None:
        if self._device is None or self._device == "":
            return None
        if isinstance(self._device, int):
            return self._device
        if self._device.isdigit():
            return int(self._device)
        for index, info in enumerate(sd.query_devices()):
            if self._device.lower() in info["name"].lower() and info["max_input_channels"] > 0:
                logger.info("Input device '%s' -> %d (%s)", self._device, index, info["name"])
                return index
        # PipeWire can still route to a node PortAudio does not list
        os.environ["PIPEWIRE_NODE"] = self._device
        logger.info("Input device '%s' not listed by PortAudio, routing through PIPEWIRE_NODE", self._device)
        return None
