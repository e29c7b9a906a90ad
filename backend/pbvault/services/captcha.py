# pbvault/services/captcha.py

import logging

import requests

logger = logging.getLogger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
RECAPTCHA_TIMEOUT = 5


class RecaptchaVerifier:
    """Checks a reCAPTCHA response token with Google for the caller's IP."""

    def __init__(self, secret: str, session: requests.Session = None):
        self.secret = secret
        self.session = session or requests.Session()

    def __call__(self, token: str, remote_ip: str) -> bool:
        if not token or not self.secret:
            return False
        try:
            resp = self.session.post(
                RECAPTCHA_VERIFY_URL,
                data={"secret": self.secret, "response": token, "remoteip": remote_ip},
                timeout=RECAPTCHA_TIMEOUT,
            )
            resp.raise_for_status()
            result = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("reCAPTCHA verification request failed: %s", exc)
            return False
        if not result.get("success"):
            logger.info("reCAPTCHA rejected token: %s", result.get("error-codes"))
            return False
        return True
