from mynute.api.dependencies.scope import get_db, get_optional_subject, get_request_scope

__all__ = ["get_request_scope", "get_db", "get_optional_subject"]
