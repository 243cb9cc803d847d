# messaging/constants.py

"""
Author:
This file holds simple, reusable text values (constants)
that are used in multiple places for the real-time layer.
Using constants like this makes the code easier to update
if the wire format needs to change later.
RT: These are the frame "type" tags the browser and server
send to each other over the WebSocket.
"""

# --- Frames the server sends ---
CONNECTION_ESTABLISHED = 'CONNECTION_ESTABLISHED'
CONNECTION_ERROR = 'CONNECTION_ERROR'
NEW_MESSAGE = 'NEW_MESSAGE'
MESSAGE_DELIVERED = 'MESSAGE_DELIVERED'
TYPING_UPDATE = 'TYPING_UPDATE'
MESSAGE_READ = 'MESSAGE_READ'
TOPIC_CHANGED = 'TOPIC_CHANGED'
PONG = 'PONG'
USER_STATUS_UPDATE = 'USER_STATUS_UPDATE'
ERROR = 'ERROR'

# --- Close codes ---
# Custom code used when a connection attempt is refused (bad token, bad path).
CLOSE_REJECTED = 4000
# "Going away", used when the server shuts down.
CLOSE_GOING_AWAY = 1001

# --- Human readable error texts ---
AUTHENTICATION_FAILED = 'Authentication failed'
INVALID_CONNECTION_PATH = 'Invalid connection path'
INVALID_MESSAGE_FORMAT = 'Invalid message format'
SERVER_SHUTTING_DOWN = 'Server shutting down'
