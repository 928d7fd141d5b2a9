"""
Error taxonomy for the gesture core.

None of these are fatal to the process: the worst outcome is a missed or
no-op gesture, surfaced to the user through the status sink.
"""


class GestureControlError(Exception):
    """Base class for all gesture-core errors."""


class DispatchError(GestureControlError):
    """An action event could not be handed to the input-injection capability."""


class CapabilityUnavailableError(DispatchError):
    """The input-injection capability is not attached or not ready.

    Recoverable: the dispatcher re-checks availability on every call.
    """


class InjectionError(DispatchError):
    """A backend command failed or timed out while injecting an action."""


class SessionInterruptedError(GestureControlError):
    """A signal source stopped delivering samples in the middle of a gesture."""

    def __init__(self, modality, reason: str = ""):
        self.modality = modality
        self.reason = reason
        super().__init__(f"{getattr(modality, 'value', modality)} session interrupted"
                         + (f": {reason}" if reason else ""))


class RecognitionFailureError(GestureControlError):
    """The external speech engine failed a recognition turn."""
