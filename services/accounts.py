from flask import request

from core.extensions import db
from models.userModel import LoginActivity, UserPreferences, UserSecuritySettings


def parse_user_agent(user_agent):
    ua = (user_agent or "").lower()
    if "ipad" in ua or "tablet" in ua:
        device = "Tablet"
    elif "mobile" in ua or "android" in ua or "iphone" in ua:
        device = "Mobile"
    else:
        device = "Desktop"

    # Edge and Chrome both advertise Safari; check the most specific first
    if "edg" in ua:
        browser = "Edge"
    elif "firefox" in ua:
        browser = "Firefox"
    elif "chrome" in ua:
        browser = "Chrome"
    elif "safari" in ua:
        browser = "Safari"
    else:
        browser = "Other"
    return device, browser


def record_login(user_id, success=True, failure_reason=None):
    user_agent = request.headers.get("User-Agent", "")
    device, browser = parse_user_agent(user_agent)
    forwarded = request.headers.get("X-Forwarded-For", "")
    activity = LoginActivity(
        user_id=user_id,
        ip_address=forwarded.split(",")[0].strip() or request.remote_addr,
        user_agent=user_agent[:500],
        device=device,
        browser=browser,
        success=success,
        failure_reason=failure_reason,
    )
    db.session.add(activity)
    return activity


def get_or_create_preferences(user):
    if user.preferences is None:
        user.preferences = UserPreferences()
        db.session.commit()
    return user.preferences


def get_or_create_security_settings(user):
    if user.security_settings is None:
        user.security_settings = UserSecuritySettings()
        db.session.commit()
    return user.security_settings
