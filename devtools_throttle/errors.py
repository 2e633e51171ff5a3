class ThrottleError(Exception):
    """Base class for everything this package raises on purpose."""


class ChannelUnavailable(ThrottleError):
    """The session cannot give us a DevTools channel.

    Either the browser engine does not speak the DevTools protocol or the
    session has already been torn down.
    """


class CommandRejected(ThrottleError):
    def __init__(self, command, message='', code=None):
        self.command = command
        self.message = message
        self.code = code
        super().__init__('{} rejected: {} ({})'.format(command, message or 'no message', code))


class UntimeableExchange(ThrottleError):
    """An exchange has no usable timing. Never leaves the collector."""
