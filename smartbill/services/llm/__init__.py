"""Language model gateway."""

from smartbill.services.llm.gateway import (
    CredentialProvider,
    ModelGateway,
    ModelProtocolError,
    extract_json_object,
    parse_model_content,
)

__all__ = [
    "CredentialProvider",
    "ModelGateway",
    "ModelProtocolError",
    "extract_json_object",
    "parse_model_content",
]
