"""DocGuard document forgery assessment API."""
