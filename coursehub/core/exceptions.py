"""
Custom Exceptions for CourseHub
Provides structured error handling across the application
"""

from typing import Any, Dict, Optional


class CourseHubException(Exception):
	"""Base exception for all CourseHub errors."""

	def __init__(
		self, message: str, code: str = 'INTERNAL_ERROR', details: Optional[Dict[str, Any]] = None, status_code: int = 500
	):
		super().__init__(message)
		self.message = message
		self.code = code
		self.details = details or {}
		self.status_code = status_code

	def to_dict(self) -> Dict[str, Any]:
		"""Convert exception to API response format."""
		return {'error': True, 'code': self.code, 'message': self.message, 'details': self.details}


class ValidationError(CourseHubException):
	"""Invalid input data."""

	def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
		super().__init__(message=message, code='VALIDATION_ERROR', details={'field': field, **(details or {})}, status_code=400)


class NotFoundError(CourseHubException):
	"""Resource not found."""

	def __init__(self, resource: str, identifier: str):
		super().__init__(
			message=f'{resource} not found: {identifier}',
			code='NOT_FOUND',
			details={'resource': resource, 'identifier': identifier},
			status_code=404,
		)


class DatabaseError(CourseHubException):
	"""Database operation failed."""

	def __init__(self, message: str, operation: Optional[str] = None, details: Optional[Dict] = None):
		super().__init__(
			message=message, code='DATABASE_ERROR', details={'operation': operation, **(details or {})}, status_code=500
		)


class MalformedRecordError(DatabaseError):
	"""A stored row could not be mapped onto its model."""

	def __init__(self, table: str, message: str, row: Optional[Dict] = None):
		super().__init__(message=f'Malformed {table} row: {message}', operation='decode', details={'table': table, 'row': row})
		self.code = 'MALFORMED_RECORD'


class AuthenticationError(CourseHubException):
	"""Authentication failed."""

	def __init__(self, message: str = 'Authentication required'):
		super().__init__(message=message, code='AUTHENTICATION_ERROR', status_code=401)


class AuthorizationError(CourseHubException):
	"""Authorization failed."""

	def __init__(self, message: str = 'Access denied'):
		super().__init__(message=message, code='AUTHORIZATION_ERROR', status_code=403)


class FeatureDisabledError(CourseHubException):
	"""Feature is switched off for the caller."""

	def __init__(self, flag_key: str):
		super().__init__(
			message=f'Feature "{flag_key}" is not available',
			code='FEATURE_DISABLED',
			details={'flag_key': flag_key},
			status_code=404,
		)
