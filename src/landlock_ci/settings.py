"""Runtime configuration from environment variables."""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from landlock_ci import constants

AnnotationMode = Literal["auto", "github", "plain"]


class Settings(BaseSettings):
    """Runtime configuration from environment variables.

    All settings can be overridden via environment variables with LANDLOCK_CI_ prefix.
    Example: LANDLOCK_CI_LOG_PATH=build/results.log
    """

    model_config = SettingsConfigDict(
        env_prefix="LANDLOCK_CI_",
        extra="ignore",
    )

    # Result log
    log_path: Path = Path(constants.DEFAULT_LOG_PATH)
    artifact_dir: Path | None = None  # Retention disabled when unset

    # Kernel probe
    kernel_release: str | None = None
    """Override the probed kernel release (reproducible CI runs, tests)."""

    # Output
    annotations: AnnotationMode = "auto"

    # Set by GitHub Actions runners; not prefixed
    github_actions: bool = Field(
        default=False,
        validation_alias=AliasChoices("GITHUB_ACTIONS", "LANDLOCK_CI_GITHUB_ACTIONS"),
    )

    def use_github_annotations(self, mode: AnnotationMode | None = None) -> bool:
        """Resolve an annotation mode to GitHub workflow commands or plain text."""
        resolved = mode or self.annotations
        if resolved == "auto":
            return self.github_actions
        return resolved == "github"
