from form_plant.exceptions.custom_exception import CustomException
from form_plant.exceptions.custom_exception_handler import custom_exception_handler
from form_plant.exceptions.unhandled_exception_handler import unhandled_exception_handler
from form_plant.exceptions.validation_exception_handler import validation_exception_handler

__all__ = [
    "CustomException",
    "custom_exception_handler",
    "unhandled_exception_handler",
    "validation_exception_handler",
]
