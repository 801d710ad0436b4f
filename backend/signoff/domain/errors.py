"""Domain Errors - Centralized Exception Hierarchy"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error - all errors extend this"""

    error_code: str = "DOMAIN_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to API response dict"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details
            }
        }


# Authorization Errors
class AuthorizationError(DomainError):
    """Actor lacks permission for action"""
    error_code = "AUTHORIZATION_ERROR"
    http_status = 403


class PermissionDeniedError(AuthorizationError):
    """Actor is not an approver of the current node"""
    error_code = "PERMISSION_DENIED"


class NotYourTurnError(AuthorizationError):
    """Sequential gate is waiting on a different approver"""
    error_code = "NOT_YOUR_TURN"


# Validation Errors
class ValidationError(DomainError):
    """Input validation failed"""
    error_code = "VALIDATION_ERROR"
    http_status = 400


class WorkflowValidationError(ValidationError):
    """Workflow definition validation failed"""
    error_code = "WORKFLOW_VALIDATION_ERROR"


# Not Found Errors
class NotFoundError(DomainError):
    """Resource not found"""
    error_code = "NOT_FOUND"
    http_status = 404


class WorkflowNotFoundError(NotFoundError):
    """Workflow not found"""
    error_code = "WORKFLOW_NOT_FOUND"


class InstanceNotFoundError(NotFoundError):
    """Form instance not found"""
    error_code = "INSTANCE_NOT_FOUND"


class NodeNotFoundError(NotFoundError):
    """Instance points at a node the workflow does not contain"""
    error_code = "NODE_NOT_FOUND"


# Conflict Errors
class ConflictError(DomainError):
    """Resource conflict"""
    error_code = "CONFLICT"
    http_status = 409


class InvalidStateError(ConflictError):
    """Action not valid for current state"""
    error_code = "INVALID_STATE"


class InstanceClosedError(InvalidStateError):
    """Instance already approved or rejected"""
    error_code = "INSTANCE_CLOSED"


class AlreadyExistsError(ConflictError):
    """Resource already exists"""
    error_code = "ALREADY_EXISTS"


class IdempotencyKeyReusedError(ConflictError):
    """Idempotency key already used for a different request"""
    error_code = "IDEMPOTENCY_KEY_REUSED"


# Engine Errors
class EngineError(DomainError):
    """Workflow engine error"""
    error_code = "ENGINE_ERROR"
    http_status = 500


class WorkflowConfigurationError(EngineError):
    """Workflow graph cannot be executed as authored"""
    error_code = "WORKFLOW_CONFIGURATION_ERROR"
    http_status = 422
