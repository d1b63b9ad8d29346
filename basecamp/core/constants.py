"""Global constants for the basecamp application."""

# Collection names
USERS_COLLECTION = "users"
GROUPS_COLLECTION = "groups"
EVENTS_COLLECTION = "events"
ACTIVITIES_COLLECTION = "activities"
COMMENTS_COLLECTION = "comments"
MESSAGES_COLLECTION = "messages"

# Realtime Database presence root
PRESENCE_ROOT = "/status"
PRESENCE_ONLINE = "online"
PRESENCE_OFFLINE = "offline"

# Event document fields
EVENT_PARTICIPANTS = "participants"
EVENT_PENDING = "pendingParticipants"

# Squad-related constants
INVITE_CODE_LENGTH = 6
# No 0/O or 1/I so codes survive being read aloud.
INVITE_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
INVITE_CODE_ATTEMPTS = 10

# Calendar-related constants
MIN_EVENT_HEIGHT = 20
MONTH_PREVIEW_LIMIT = 3
DEFAULT_TIMEZONE = "Asia/Jakarta"

# Activity-related constants
ACTIVITY_FEED_LIMIT = 10

# Chat-related constants
MAX_MESSAGE_LENGTH = 1000
MESSAGE_HISTORY_LIMIT = 100

# Server-sent event streams
STREAM_HEARTBEAT_SECONDS = 1

# Upload-related constants
MAX_COVER_PHOTO_BYTES = 700_000

# Defaults for new users
DEFAULT_DISPLAY_NAME = "User"
DEFAULT_ACTIVITY = "Just joined"
