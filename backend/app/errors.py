"""
LaunchNet Gateway - Rejection Taxonomy

Every way a gateway request can be refused. ``error`` is the coarse public
label sent to the device; ``kind`` is the fine-grained label that goes to
the server log so operators can tell e.g. an unregistered board from an
unprovisioned one.
"""


class GatewayError(Exception):
    status_code = 500
    error = "Internal server error"
    kind = "internal"

    def __init__(self, message=None, **context):
        self.message = message or self.error
        self.context = context
        super().__init__(self.message)


# --- Authentication -------------------------------------------------------

class AuthenticationError(GatewayError):
    status_code = 401
    error = "Authentication failed"
    kind = "auth"


class MissingCredentials(AuthenticationError):
    error = "Authentication required"
    kind = "auth.missing_credentials"


class InvalidTimestamp(AuthenticationError):
    error = "Invalid timestamp"
    kind = "auth.invalid_timestamp"


class MissingBoardId(AuthenticationError):
    status_code = 400
    error = "Missing boardId"
    kind = "auth.missing_board_id"


class DeviceNotFound(AuthenticationError):
    status_code = 404
    error = "Device not found"
    kind = "auth.device_not_found"


class DeviceNotProvisioned(AuthenticationError):
    status_code = 403
    error = "Device not provisioned"
    kind = "auth.not_provisioned"


class InvalidSignature(AuthenticationError):
    error = "Invalid signature"
    kind = "auth.invalid_signature"


# --- Validation -----------------------------------------------------------

class InvalidRequest(GatewayError):
    status_code = 400
    error = "Invalid input"
    kind = "validation"


class NoRelayAvailable(InvalidRequest):
    error = "No base station available for auto-discovery"
    kind = "validation.no_relay"


# --- Not found ------------------------------------------------------------

class NotFound(GatewayError):
    status_code = 404
    error = "Not found"
    kind = "not_found"


class CommandNotFound(NotFound):
    error = "Command not found"
    kind = "not_found.command"


class RelayNotFound(NotFound):
    error = "Base station not registered"
    kind = "not_found.relay"


class DeviceNotFoundInNetwork(NotFound):
    error = "Device not found"
    kind = "not_found.device"


# --- Conflict -------------------------------------------------------------

class Conflict(GatewayError):
    status_code = 409
    error = "Conflict"
    kind = "conflict"


class InvalidTransition(Conflict):
    error = "Invalid command transition"
    kind = "conflict.transition"


class CommandAlreadyFinalized(Conflict):
    error = "Command already finalized"
    kind = "conflict.finalized"


# --- Operator API ---------------------------------------------------------

class AdminKeyRequired(GatewayError):
    status_code = 401
    error = "Invalid admin key"
    kind = "admin.invalid_key"


class AdminApiDisabled(GatewayError):
    status_code = 503
    error = "Admin API disabled"
    kind = "admin.disabled"
