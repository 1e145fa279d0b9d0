from __future__ import annotations


class VideoPromptError(RuntimeError):
    """Base class for failures of a single generation attempt."""


class ConfigurationError(VideoPromptError):
    pass


class RemoteServiceError(VideoPromptError):
    pass


class MalformedResponseError(VideoPromptError):
    pass


class ImageEncodeError(VideoPromptError):
    pass


class UnsupportedImageError(ValueError):
    pass


class SessionBusyError(RuntimeError):
    pass
