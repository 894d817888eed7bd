class SpeechBridgeError(Exception):
    pass


class ConfigError(SpeechBridgeError, ValueError):
    pass


class ConnectionFailedError(SpeechBridgeError, ConnectionError):
    pass


class HandshakeTimeoutError(SpeechBridgeError, TimeoutError):
    pass


class ProtocolError(SpeechBridgeError):
    pass


class UnsupportedOperationError(SpeechBridgeError, NotImplementedError):
    pass


class SinkClosedError(SpeechBridgeError):
    pass
