"""
Exceptions raised by the learning client
"""
from typing import Optional, Dict, Any


class LearningClientException(Exception):
    """Base exception for all custom exceptions"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ApiException(LearningClientException):
    """Raised when a backend call fails at the transport or HTTP level"""
    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code


class AuthenticationException(ApiException):
    """Raised when the backend rejects the bearer token"""
    pass


class ResourceNotFoundException(ApiException):
    """Raised when a requested resource is not found"""
    pass


class ValidationException(LearningClientException):
    """Raised when input or a server payload fails validation"""
    pass


class QuizException(LearningClientException):
    """Raised when an inline quiz cannot be started or submitted"""
    pass
