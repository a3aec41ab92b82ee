from dataclasses import dataclass, field

from livecast.utils.app_errors import AppError


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a controller operation. Controllers report failure here, never by raising."""

    ok: bool
    error: AppError | None = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def success(cls) -> "OperationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, error: AppError) -> "OperationResult":
        return cls(ok=False, error=error)


@dataclass(frozen=True)
class CombinedResult:
    """Outcome of a multi-step coordinator operation; collects every step's error."""

    ok: bool
    errors: list[AppError] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.ok

    @property
    def message(self) -> str | None:
        if not self.errors:
            return None
        return "; ".join(error.errmesg for error in self.errors)
