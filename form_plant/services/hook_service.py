"""
Extension points for site-specific behaviour.

Implementations are registered on a HookRegistry at startup. Validators and
initial-value providers are consulted in registration order and the first
one with an opinion wins; observers all run after a submission is accepted.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from form_plant.schema.form_schema import FieldDefinition, FormDefinition

logger = logging.getLogger(__name__)


@dataclass
class SubmissionContext:
    """Request metadata that travels with a submission."""

    ip_address: str = ""
    user_agent: str = ""
    referrer: str = ""
    user_id: Optional[str] = None
    recaptcha_token: Optional[str] = None


@dataclass
class SubmissionEvent:
    form: FormDefinition
    submission_id: Optional[int]
    data: Dict[str, Any]
    context: SubmissionContext
    stored_files: Dict[str, Any] = field(default_factory=dict)


class _FieldScoped:
    # None means every field
    field_names: Optional[Iterable[str]] = None

    def applies_to(self, field_def: FieldDefinition) -> bool:
        return self.field_names is None or field_def.name in set(self.field_names)


class FieldValidator(_FieldScoped, ABC):
    @abstractmethod
    def validate(self, field_def: FieldDefinition, value: Any, data: Dict[str, Any]) -> Optional[str]:
        """None keeps the standard rules, "" accepts the value, any other string is the error."""


class InitialValueProvider(_FieldScoped, ABC):
    @abstractmethod
    def initial_value(self, field_def: FieldDefinition, form: FormDefinition) -> Any:
        """Value to pre-fill, or None for no opinion."""


class SubmissionObserver(ABC):
    @abstractmethod
    def after_submit(self, event: SubmissionEvent) -> None:
        ...


class HookRegistry:
    def __init__(self):
        self.validators: List[FieldValidator] = []
        self.initial_value_providers: List[InitialValueProvider] = []
        self.observers: List[SubmissionObserver] = []

    def register_validator(self, validator: FieldValidator) -> None:
        self.validators.append(validator)

    def register_initial_value_provider(self, provider: InitialValueProvider) -> None:
        self.initial_value_providers.append(provider)

    def register_observer(self, observer: SubmissionObserver) -> None:
        self.observers.append(observer)

    def validation_override(self, field_def: FieldDefinition, value: Any, data: Dict[str, Any]) -> Optional[str]:
        for validator in self.validators:
            if not validator.applies_to(field_def):
                continue
            result = validator.validate(field_def, value, data)
            if result is not None:
                return result
        return None

    def initial_value(self, field_def: FieldDefinition, form: FormDefinition) -> Any:
        for provider in self.initial_value_providers:
            if not provider.applies_to(field_def):
                continue
            value = provider.initial_value(field_def, form)
            if value is not None:
                return value
        return None

    def notify_submitted(self, event: SubmissionEvent) -> None:
        for observer in self.observers:
            try:
                observer.after_submit(event)
            except Exception as e:
                logger.error(
                    f"Submission observer {observer.__class__.__name__} failed for form {event.form.id}: {e}",
                    exc_info=True,
                )


# process-wide registry, populated at startup
hooks = HookRegistry()
