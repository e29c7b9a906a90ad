# pbvault/core/policy.py

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from pbvault.core.errors import ValidationFailure


@dataclass(frozen=True)
class LifecycleDecision:
    expire_at: datetime
    wait_verify: bool
    read_then_burn: bool
    pwd_is_set: bool


@dataclass(frozen=True)
class LifecyclePolicy:
    """
    Expiry, burn-after-read and verification-hold rules for new pastes.
    Pure: the caller supplies the current time.
    """

    max_expire_hours: int = 24
    default_expire_hours: int = 24
    verify_window: timedelta = timedelta(minutes=5)

    def decide(
        self,
        requested_expire_hours: Optional[int],
        passphrase_present: bool,
        captcha_required: bool,
        now: datetime,
    ) -> LifecycleDecision:
        if requested_expire_hours is not None:
            if isinstance(requested_expire_hours, bool) or not isinstance(requested_expire_hours, int):
                raise ValidationFailure("expire hours must be an integer")
            if requested_expire_hours < 0 or requested_expire_hours > self.max_expire_hours:
                raise ValidationFailure(
                    f"expire hours must be between 0 and {self.max_expire_hours}"
                )

        if captcha_required:
            # Requested expiry is deferred; confirmation applies the default horizon
            return LifecycleDecision(
                expire_at=now + self.verify_window,
                wait_verify=True,
                read_then_burn=False,
                pwd_is_set=bool(passphrase_present),
            )

        if requested_expire_hours:
            expire_at = now + timedelta(hours=requested_expire_hours)
        else:
            # Omitted, or 0 (burn after read): keep the default horizon so expiry stays in the future
            expire_at = self.default_expiry(now)

        return LifecycleDecision(
            expire_at=expire_at,
            wait_verify=False,
            read_then_burn=requested_expire_hours == 0,
            pwd_is_set=bool(passphrase_present),
        )

    def default_expiry(self, now: datetime) -> datetime:
        return now + timedelta(hours=self.default_expire_hours)
