class AppError(Exception):
	"""Base error carrying a machine code and the HTTP status to surface it with."""

	code = "APP_ERROR"
	status_code = 500

	def __init__(self, message: str):
		super().__init__(message)
		self.message = message


class ConfigurationError(AppError):
	code = "CONFIGURATION_ERROR"
	status_code = 503


class ValidationError(AppError):
	code = "VALIDATION_ERROR"
	status_code = 400


class TransportError(AppError):
	"""A remote listing/upload call failed on one protocol."""

	code = "TRANSPORT_ERROR"
	status_code = 502

	def __init__(self, message: str, protocol: str):
		super().__init__(message)
		self.protocol = protocol


class RemoteStoreError(AppError):
	"""Both the preferred and the fallback protocol failed."""

	code = "REMOTE_STORE_ERROR"
	status_code = 502


class ScanError(RemoteStoreError):
	code = "SCAN_ERROR"


class DownloadError(AppError):
	code = "DOWNLOAD_ERROR"
	status_code = 500


USER_MESSAGES = {
	"DOWNLOAD_ERROR": "Could not download the song. Please check that the URL is valid and the song is available.",
	"TRANSPORT_ERROR": "Failed to upload the song. Please contact support if this persists.",
	"SCAN_ERROR": "Failed to reach the music store. Please try again later.",
	"CONFIGURATION_ERROR": "Download service is not available. Please contact support.",
}


def user_message(error: Exception) -> str:
	"""Map an error to the text shown to people submitting songs."""
	if isinstance(error, ValidationError):
		return f"Validation Error: {error.message}"
	if isinstance(error, AppError):
		return USER_MESSAGES.get(error.code, error.message)
	text = str(error)
	if "timed out" in text.lower() or "timeout" in text.lower():
		return "The download timed out. The song may be too long or the service is busy. Please try again."
	return "An unexpected error occurred. Please try again later."
