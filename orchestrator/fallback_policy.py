from dataclasses import dataclass, field
from enum import Enum

from models.document import FailureReason, FetchFailure, SourceKind

DEFAULT_FALLBACK_REASONS = frozenset(
    {
        FailureReason.NOT_FOUND,
        FailureReason.MALFORMED_SOURCE,
        FailureReason.RATE_LIMITED,
        FailureReason.UPSTREAM_ERROR,
    }
)


class NextAction(str, Enum):
    TRY_GENERIC = "try_generic"
    STOP = "stop"


@dataclass(frozen=True)
class FallbackDecision:
    action: NextAction
    reason: str


@dataclass(frozen=True)
class FallbackPolicy:
    fallback_reasons: frozenset[FailureReason] = field(default=DEFAULT_FALLBACK_REASONS)
    # AuthError is a configuration problem; generic extraction still runs, but it is reported separately
    fallback_after_auth_error: bool = True
    fallback_on_unknown: bool = True


class FallbackManager:
    def decide(
        self,
        *,
        classified_as: SourceKind,
        failure: FetchFailure | None,
        generic_enabled: bool,
        policy: FallbackPolicy,
    ) -> FallbackDecision:
        if failure is None:
            if classified_as != SourceKind.UNKNOWN:
                # Specialized adapter not invoked because it is disabled
                reason = "adapter_disabled"
            else:
                reason = "unknown_source"
            if not policy.fallback_on_unknown:
                return FallbackDecision(action=NextAction.STOP, reason=reason)
        elif failure.reason == FailureReason.AUTH_ERROR:
            if not policy.fallback_after_auth_error:
                return FallbackDecision(action=NextAction.STOP, reason=failure.reason.value)
            reason = failure.reason.value
        elif failure.reason in policy.fallback_reasons:
            reason = failure.reason.value
        else:
            return FallbackDecision(action=NextAction.STOP, reason=failure.reason.value)

        if not generic_enabled:
            return FallbackDecision(action=NextAction.STOP, reason="generic_disabled")
        return FallbackDecision(action=NextAction.TRY_GENERIC, reason=reason)
