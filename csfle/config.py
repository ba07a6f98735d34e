# csfle/config.py
import os
from dataclasses import dataclass

ON_FAILURE_FAIL = "fail"
ON_FAILURE_DEGRADE = "degrade"

ON_FAILURE_CHOICES = (ON_FAILURE_FAIL, ON_FAILURE_DEGRADE)


@dataclass(frozen=True)
class CSFLEConfig:
    """
    Client-side settings.

    on_encrypt_failure decides what happens when a field cannot be
    encrypted: "fail" aborts the write, "degrade" sends the note as
    plaintext (logged as a warning).
    """

    api_url: str = "http://localhost:8000"
    on_encrypt_failure: str = ON_FAILURE_FAIL
    max_workers: int = 4
    timeout: float = 10.0
    autosave_delay: float = 2.0

    def __post_init__(self):
        if self.on_encrypt_failure not in ON_FAILURE_CHOICES:
            raise ValueError(
                f"on_encrypt_failure must be one of {ON_FAILURE_CHOICES}, "
                f"got {self.on_encrypt_failure!r}"
            )
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")

    @classmethod
    def from_env(cls) -> "CSFLEConfig":
        return cls(
            api_url=os.environ.get("CSFLE_API_URL", cls.api_url).rstrip("/"),
            on_encrypt_failure=os.environ.get(
                "CSFLE_ON_ENCRYPT_FAILURE", cls.on_encrypt_failure
            ),
            max_workers=int(os.environ.get("CSFLE_MAX_WORKERS", cls.max_workers)),
            timeout=float(os.environ.get("CSFLE_TIMEOUT", cls.timeout)),
            autosave_delay=float(
                os.environ.get("CSFLE_AUTOSAVE_DELAY", cls.autosave_delay)
            ),
        )
