"""Error kinds raised by the stage machine, job engine and provider layer."""


class ShortFactoryError(Exception):
    """Base class for all domain errors."""


class StageMismatch(ShortFactoryError):
    """Supplied payload does not match the shape the target stage expects."""

    def __init__(self, stage, message: str):
        self.stage = stage
        super().__init__(f"Stage {getattr(stage, 'value', stage)}: {message}")


class TerminalStage(ShortFactoryError):
    """The project is already at the last stage."""


class ProjectNotFound(ShortFactoryError):
    """No project with the given id exists."""


class ProfileNotFound(ShortFactoryError):
    """No channel profile with the given id exists."""


class JobStateError(ShortFactoryError):
    """The job is not in a state that allows the requested action."""


class MissingStageData(ShortFactoryError):
    """An operation needs the payload of an earlier or current stage that is absent."""


class NoAutoGenerator(ShortFactoryError):
    """The stage has no automatic generator; data must be supplied manually."""


class NoCredentials(ShortFactoryError):
    """A required credential field is empty."""


class ProviderError(ShortFactoryError):
    """A generation provider call failed."""


class RetryableProviderError(ProviderError):
    """Rate-limit, quota or transient failure worth retrying."""


class CredentialsExhausted(RetryableProviderError):
    """Every credential in the set failed with a retryable error."""

    def __init__(self, messages: list[str]):
        self.messages = messages
        joined = "\n".join(messages)
        super().__init__(f"All {len(messages)} credentials failed:\n{joined}")


class TerminalProviderError(ProviderError):
    """Auth, permission or malformed-request failure; not retried."""


class RenderUnavailable(ShortFactoryError):
    """The render backend (ffmpeg) is missing."""
