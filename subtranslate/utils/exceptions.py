"""Custom exceptions for the subtitle translation add-on"""


class SubtitleAddonError(Exception):
    """Base exception for the subtitle translation add-on"""
    pass


class ConfigurationError(SubtitleAddonError):
    """Raised when required settings are missing or unusable"""
    pass


class InvalidIdentifier(SubtitleAddonError):
    """Raised when an inbound content id cannot be normalized"""
    pass


class NotFound(SubtitleAddonError):
    """Raised when no source subtitle exists for a content id"""
    pass


class ResolutionFailed(SubtitleAddonError):
    """Raised when the subtitle catalog cannot be queried"""
    pass


class FetchFailed(SubtitleAddonError):
    """Raised when subtitle download or validation fails"""
    pass


class TranslationFailed(SubtitleAddonError):
    """Raised when the translation service fails or returns unusable text"""
    pass


class WriteFailed(SubtitleAddonError):
    """Raised when a translated subtitle cannot be persisted"""
    pass


class RequestError(SubtitleAddonError):
    """Raised when an outbound HTTP request fails"""
    pass


class CloudflareError(RequestError):
    """Raised when Cloudflare protection cannot be bypassed"""
    pass


class RateLimitError(RequestError):
    """Raised when a remote rate limit is exceeded"""
    pass


class ServiceUnavailableError(RequestError):
    """Raised when a remote service is unreachable"""
    pass
