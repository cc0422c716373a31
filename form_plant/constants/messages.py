# constants/messages.py

class MESSAGE:
    FORM_CREATED = "Form created successfully"
    FORM_UPDATED = "Form updated successfully"
    FORM_DELETED = "Form deleted successfully"
    FORM_TRASHED = "Form moved to trash"
    FORM_RESTORED = "Form restored successfully"
    FORM_DUPLICATED = "Form duplicated successfully"
    FORM_FOUND = "Form retrieved successfully"
    FORMS_FOUND = "Forms retrieved successfully"

    SUBMISSION_FOUND = "Submission retrieved successfully"
    SUBMISSIONS_FOUND = "Submissions retrieved successfully"
    SUBMISSION_DELETED = "Submission deleted successfully"
    SUBMISSIONS_DELETED = "Submissions deleted successfully"

    SUBMISSION_COMPLETED = "Submission completed"
    VALIDATION_SUCCESS = "Validation successful"

    # confirmation screen defaults
    CONFIRMATION_TITLE = "Please confirm your input"
    CONFIRMATION_TEXT = "Please review your input below and click submit to complete."
    BACK_BUTTON = "Back"
    CONFIRM_SUBMIT_BUTTON = "Submit"
    SUBMIT_BUTTON = "Submit"
    SELECT_PLACEHOLDER = "Please select"

    # email defaults
    ADMIN_EMAIL_SUBJECT = "[{form_title}] New Inquiry"
    ADMIN_EMAIL_INTRO = "The following submission was received:"
    USER_EMAIL_SUBJECT = "Your inquiry has been received"
    USER_EMAIL_INTRO = "Thank you for your inquiry.\nWe have received the following:"
    SUBMITTED_AT = "Submitted at: {date}"
    IP_ADDRESS = "IP Address: {ip}"
