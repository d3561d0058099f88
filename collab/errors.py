# ============================================
#   CodeCollab — HTTP error type
# ============================================


class ApiError(Exception):
    """
    Raised by HTTP route code; rendered as
    {"success": false, "message": ...} with `status`.
    """

    def __init__(self, status, message, errors=None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.errors = errors

    def to_dict(self):
        payload = {"success": False, "message": self.message}
        if self.errors:
            payload["errors"] = self.errors
        return payload
