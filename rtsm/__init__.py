"""
RTSM end-to-end automation: login, session and study navigation flows
against the Maven Clinical RTSM web application.
"""
