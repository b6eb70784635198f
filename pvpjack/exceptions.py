"""
Game exceptions.

Raised by the service layer and translated to HTTP errors by the routers.
Stale actions are not exceptions: they come back as ``None``.
"""


class PvpJackError(Exception):
    """Base class for every game error"""
    pass


# ============ validation ============

class ValidationFailed(PvpJackError):
    """Input rejected; no state was changed"""
    pass


class InvalidBet(ValidationFailed):
    pass


class InsufficientBalance(ValidationFailed):
    pass


class WrongRoomCode(ValidationFailed):
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__("Wrong room code")


class RoomFull(ValidationFailed):
    pass


class DuplicateAccount(ValidationFailed):
    pass


class InvalidCredentials(ValidationFailed):
    pass


# ============ permission ============

class NotAllowed(PvpJackError):
    """Caller lacks the role the operation needs"""
    pass


# ============ lookup / state ============

class RoomNotFound(PvpJackError):
    def __init__(self, room_id):
        self.room_id = room_id
        super().__init__(f"Room {room_id} not found")


class UserNotFound(PvpJackError):
    def __init__(self, user_id):
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class InvalidStateTransition(PvpJackError):
    def __init__(self, src, dst):
        self.src = src
        self.dst = dst
        super().__init__(f"Cannot move room from {src.value} to {dst.value}")
