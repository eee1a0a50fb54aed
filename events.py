# Inbound events (peer -> relay)
JOIN = "join"
LEAVE = "leave"
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "ice-candidate"
CHAT_MESSAGE = "chat-message"
CALL_USER = "call-user"
CALL_ACCEPTED = "call-accepted"
CALL_REJECTED = "call-rejected"
END_CALL = "end-call"
PING = "ping"

# Outbound events (relay -> peer)
ROOM_UPDATE = "room:update"  # full member list after a membership change
JOINED = "joined"  # direct ack to the joining connection
LEFT = "left"  # direct ack to the leaving connection
INCOMING_CALL = "incoming-call"
CALL_ENDED = "call-ended"
USER_DISCONNECTED = "user-disconnected"
ERROR = "error"
PONG = "pong"

# room:update actions
ACTION_USER_JOINED = "user-joined"
ACTION_USER_LEFT = "user-left"
ACTION_USER_DISCONNECTED = "user-disconnected"

NEGOTIATION_EVENTS = (OFFER, ANSWER, ICE_CANDIDATE)
