"""Errors raised while provisioning and supervising embedded Redis processes."""


class EmbeddedRedisError(Exception):
    pass


class ConfigError(EmbeddedRedisError, ValueError):
    pass


class PortAllocationError(EmbeddedRedisError):
    pass


class ExhaustedPorts(PortAllocationError):
    pass


class AlreadyRunning(EmbeddedRedisError):
    pass


class LaunchFailure(EmbeddedRedisError):
    def __init__(self, message, output=''):
        super().__init__(message)
        self.output = output


class ShutdownFailure(EmbeddedRedisError):
    pass
