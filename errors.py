"""Failures raised by the binding core and its collaborators.

Business outcomes such as "already bound" are result values, not exceptions
(see ``binding_sync``). Everything here is scoped to a single request.
"""


class BindingError(Exception):
    """Base class for all binding failures."""


class InvalidInput(BindingError, ValueError):
    """The caller supplied an unusable argument. Nothing was touched."""


class StoreError(BindingError):
    """The binding store could not complete an operation."""


class StoreReadError(StoreError):
    pass


class StoreWriteError(StoreError):
    pass


class RemoteCommandError(BindingError):
    """A remote console exchange did not complete."""


class RemoteUnreachable(RemoteCommandError):
    """The session could not be established (network or authentication)."""


class RemoteTimeout(RemoteCommandError):
    pass


class RemoteProtocolError(RemoteCommandError):
    pass
