"""Error taxonomy for the rental application and contract signing flows."""

from typing import List, Optional


class RentalFlowError(Exception):
    """Base class for every error raised by the workflow."""


class StepValidationError(RentalFlowError):
    """A step's required fields are missing or malformed. Never reaches the network."""

    def __init__(self, missing: List[str], message: Optional[str] = None):
        self.missing = list(missing)
        super().__init__(message or f"Missing or invalid fields: {', '.join(self.missing)}")


class MissingApplicationDataError(RentalFlowError):
    def __init__(self, message: str = "Missing required application data"):
        super().__init__(message)


class MissingPhoneError(RentalFlowError):
    def __init__(self, message: str = "Phone number is required for application submission"):
        super().__init__(message)


class DocumentUploadError(RentalFlowError):
    """One upload in a batch failed; the whole batch is void."""

    def __init__(self, field: str, file_name: Optional[str] = None, cause: Optional[BaseException] = None):
        self.field = field
        self.file_name = file_name
        self.cause = cause
        label = field.replace("_", " ")
        if file_name:
            message = f"Failed to upload {label}: {file_name}"
        else:
            message = f"Failed to upload {label}"
        super().__init__(message)


class VerificationConfigError(RentalFlowError):
    def __init__(self, message: str = "Identity verification is not properly configured. Please contact support."):
        super().__init__(message)


class SignatureNotAllowedError(RentalFlowError):
    """The viewer is not entitled to the slot, or the slot is already signed."""


class SignatureSubmissionError(RentalFlowError):
    """A call in a signature batch failed. Earlier calls stay committed."""

    def __init__(self, message: str, contract=None, signed_slots: Optional[List[str]] = None):
        self.contract = contract
        self.signed_slots = list(signed_slots or [])
        super().__init__(message)
