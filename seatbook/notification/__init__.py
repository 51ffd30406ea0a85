"""
Notification package: models, logging and the client services for the
booking API's notification endpoints and live event stream.
"""
