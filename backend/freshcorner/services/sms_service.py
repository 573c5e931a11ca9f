# Overview: Outbound SMS gateway. Messages go to the application log only.

from flask import current_app


def send_otp(phone: str, code: str) -> None:
    current_app.logger.info("OTP for %s: %s", phone, code)
