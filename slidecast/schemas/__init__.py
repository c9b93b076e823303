from slidecast.schemas.envelope import ErrorEnvelope, ErrorInfo, ErrorLocation, ResponseMeta, SuggestedAction

__all__ = [
    "ErrorEnvelope",
    "ErrorInfo",
    "ErrorLocation",
    "ResponseMeta",
    "SuggestedAction",
]
