# constants/error.py
class ERROR:
    INTERNAL_ERROR = "Something went wrong. Please try again later"
    UNAUTHORIZED = "Authentication failed. Token is missing or invalid."
    ACCESS_DENIED = "Access denied"
    INVALID_REQUEST = "Invalid request"

    # forms
    FORM_NOT_FOUND = "Form not found"
    INVALID_FORM_SECTION = "Unknown form section"
    FIELD_TYPE_MISSING = "Field type is not specified"
    FIELD_NAME_MISSING = "Field name is not specified"
    FIELD_NAME_INVALID = "Field name can only contain alphanumeric characters and underscores"
    FIELD_TYPE_UNSUPPORTED = "Unsupported field type"
    FIELD_NAME_DUPLICATE = "Field name must be unique"

    # submissions
    SUBMISSION_NOT_FOUND = "Submission not found"
    VALIDATION_FAILED = "There are errors in your input"
    SAVE_FAILED = "Failed to save data"
    SPAM_DETECTED = "Your submission could not be accepted"
    RATE_LIMITED = "Too many submissions. Please try again later"
    CONFIRMATION_TOKEN_INVALID = "The confirmation has expired or is invalid. Please confirm your input again"
    CONFIRMATION_DATA_CHANGED = "The submitted data does not match the confirmed data. Please confirm your input again"

    # captcha
    RECAPTCHA_FAILED = "reCAPTCHA verification failed"
    RECAPTCHA_UNREACHABLE = "Failed to communicate with reCAPTCHA server"
    RECAPTCHA_LOW_SCORE = "Suspected spam detected"
    RECAPTCHA_NOT_CONFIGURED = "reCAPTCHA configuration is incomplete"

    # files
    FILE_UPLOAD_FAILED = "File upload failed"
    FILE_TYPE_NOT_ALLOWED = "This file type is not allowed for security reasons"
    FILE_DOUBLE_EXTENSION = "Files with multiple extensions are not allowed"
    FILE_INVALID_NAME = "Invalid file name"
    FILE_MIME_NOT_ALLOWED = "The file content does not match an allowed file type"

    # embedding
    IFRAME_NOT_ALLOWED = "Iframe embedding is not allowed for this form"
    JS_EMBED_NOT_ALLOWED = "JS embedding is not allowed for this form"
    ORIGIN_NOT_ALLOWED = "Embedding from this domain is not allowed"
    SUBMIT_ORIGIN_NOT_ALLOWED = "Submissions from this domain are not allowed"

    # validator templates, formatted with the field label
    FIELD_REQUIRED = "{label} is required"
    FIELD_FORMAT_INVALID = "{label} format is invalid"
    FIELD_NOT_NUMBER = "{label} must be a number"
    FIELD_NUMBER_MIN = "{label} must be at least {limit}"
    FIELD_NUMBER_MAX = "{label} must be at most {limit}"
    FIELD_MIN_LENGTH = "{label} must be at least {limit} characters"
    FIELD_MAX_LENGTH = "{label} must be at most {limit} characters"
    FIELD_UPLOAD_FAILED = "{label} upload failed"
    FIELD_FILE_TOO_LARGE = "{label} file size must be {limit}MB or less"
    FIELD_FILE_TYPE = "{label} only accepts {types} files"
